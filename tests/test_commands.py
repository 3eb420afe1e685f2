import pytest

from nutclient.protocol.commands import Command, list_command, list_sentinels


def test_frame_joins_with_single_spaces():
    cmd = Command.make("GET", "NUMLOGINS", "dummy")
    assert cmd.line == "GET NUMLOGINS dummy"
    assert cmd.frame() == b"GET NUMLOGINS dummy\n"


def test_non_string_args_are_stringified():
    assert Command.make("SET", "VAR", "dummy", "input.transfer.low", 165).line == "SET VAR dummy input.transfer.low 165"


def test_values_with_spaces_are_quoted():
    assert Command.make("SET", "VAR", "dummy", "ups.id", "Server room").line == 'SET VAR dummy ups.id "Server room"'
    assert Command.make("SET", "VAR", "d", "v", 'say "hi"').line == 'SET VAR d v "say \\"hi\\""'


@pytest.mark.parametrize("bad", ["", "two\nlines"])
def test_unframeable_args_are_rejected(bad):
    with pytest.raises(ValueError):
        Command.make("SET", "VAR", "dummy", "ups.id", bad).frame()


def test_sentinels_follow_the_command():
    cmd = list_command("ENUM", "dummy", "input.transfer.high")
    assert cmd.line == "LIST ENUM dummy input.transfer.high"
    assert list_sentinels(cmd) == (
        "BEGIN LIST ENUM dummy input.transfer.high",
        "END LIST ENUM dummy input.transfer.high",
    )
    assert list_sentinels(list_command("UPS")) == ("BEGIN LIST UPS", "END LIST UPS")
