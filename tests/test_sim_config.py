from pathlib import Path

import pytest

from nutclient.sim.config_loader import load_sim_config


def test_config_validation_catches_missing_ups(tmp_path: Path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("server: {version: '2.8.0'}\nusers: {}\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_sim_config(bad)


def test_names_with_spaces_are_rejected(tmp_path: Path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("ups:\n  'my ups': {description: x}\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_sim_config(bad)


def test_missing_file(tmp_path: Path):
    with pytest.raises(ValueError):
        load_sim_config(tmp_path / "nope.yaml")


def test_values_are_coerced_to_strings(tmp_path: Path):
    cfg = tmp_path / "sim.yaml"
    cfg.write_text(
        """
ups:
  dummy:
    vars:
      battery.charge: {value: 100}
      input.transfer.low:
        value: 160
        writable: true
        ranges: [{min: 160, max: 170}]
users:
  admin: {password: secret, upsmon: primary, instcmds: [all]}
""".lstrip(),
        encoding="utf-8",
    )
    c = load_sim_config(cfg)
    var = c.ups["dummy"].vars["input.transfer.low"]
    assert c.ups["dummy"].vars["battery.charge"].value == "100"
    assert (var.ranges[0].min, var.ranges[0].max) == ("160", "170")
    assert c.users["admin"].may_run("anything")
    assert c.server.netver == "1.3"


def test_env_var_selects_config(tmp_path: Path, monkeypatch):
    cfg = tmp_path / "sim.yaml"
    cfg.write_text("ups:\n  envups: {description: from env}\n", encoding="utf-8")
    monkeypatch.setenv("NUT_SIM_CONFIG", str(cfg))
    assert list(load_sim_config().ups) == ["envups"]


def test_packaged_default_loads(monkeypatch):
    monkeypatch.delenv("NUT_SIM_CONFIG", raising=False)
    c = load_sim_config()
    assert "dummy" in c.ups
    assert c.ups["dummy"].description == "A test UPS"
