from pathlib import Path

from nutclient.client.session import NutSession
from nutclient.config import load_settings


def test_defaults(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)  # no stray .env
    for k in ["NUT_HOST", "NUT_PORT", "NUT_USERNAME", "NUT_PASSWORD", "NUT_TIMEOUT_S", "NUT_LOG_LEVEL", "NUT_SIM_CONFIG"]:
        monkeypatch.delenv(k, raising=False)
    s = load_settings()
    assert (s.host, s.port, s.username, s.password) == ("127.0.0.1", 3493, "", "")
    assert s.timeout_s == 10.0
    assert s.log_level == "INFO"
    assert s.sim_config is None


def test_env_overrides(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NUT_HOST", "ups.lan")
    monkeypatch.setenv("NUT_PORT", "13493")
    monkeypatch.setenv("NUT_USERNAME", "admin")
    monkeypatch.setenv("NUT_PASSWORD", "secret")
    monkeypatch.setenv("NUT_TIMEOUT_S", "2.5")
    monkeypatch.setenv("NUT_LOG_LEVEL", "debug")
    monkeypatch.setenv("NUT_SIM_CONFIG", "sim.yaml")
    s = load_settings()
    assert s.port == 13493
    assert s.log_level == "DEBUG"
    assert s.sim_config == Path("sim.yaml")

    session = NutSession.from_settings(s)
    assert (session.host, session.port, session.username, session.password, session.timeout_s) == (
        "ups.lan",
        13493,
        "admin",
        "secret",
        2.5,
    )
