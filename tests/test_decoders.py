import pytest

from nutclient.protocol.commands import list_command
from nutclient.protocol.decoders import (
    LAST_ONLY,
    MAX_READ_FAILURES,
    WHOLE_LINE,
    LineReader,
    decode_list,
    decode_single,
    label_rows,
)
from nutclient.protocol.errors import ProtocolError, ProtocolViolation, ShapeMismatch, TransportError

from conftest import ScriptedStream


def _reader(*chunks):
    return LineReader(ScriptedStream(chunks))


# ---- line reader ----
def test_read_line_strips_newline_and_keeps_remainder():
    r = _reader(b"OK\nOK Goodbye\n")
    assert r.read_line() == "OK"
    assert r.read_line() == "OK Goodbye"


def test_read_line_joins_partial_chunks():
    r = _reader(b"NUMLOG", b"INS dum", b"my 3\r\n")
    assert r.read_line() == "NUMLOGINS dummy 3"


def test_transient_empty_reads_are_tolerated():
    r = _reader(*([b""] * MAX_READ_FAILURES), b"OK\n")
    assert r.read_line() == "OK"


def test_timeouts_count_as_failed_reads():
    r = _reader(TimeoutError(), b"O", TimeoutError(), TimeoutError(), b"K\n")
    assert r.read_line() == "OK"


def test_consecutive_failures_past_bound_raise():
    stream = ScriptedStream([b"OK"])
    r = LineReader(stream)
    with pytest.raises(TransportError):
        r.read_line()
    # one successful read, then MAX_READ_FAILURES tolerated + the failing one
    assert stream.reads == 1 + MAX_READ_FAILURES + 1


def test_socket_errors_are_transport_errors():
    r = _reader(ConnectionResetError("reset"))
    with pytest.raises(TransportError):
        r.read_line()


def test_non_utf8_line_is_a_violation():
    r = _reader(b"\xff\xfe\n")
    with pytest.raises(ProtocolViolation):
        r.read_line()


# ---- single line ----
@pytest.mark.parametrize(
    "selector, expected",
    [(LAST_ONLY, "12345"), (WHOLE_LINE, "OK TRACKING 12345"), (2, "12345"), (1, "TRACKING 12345")],
)
def test_field_selector(selector, expected):
    assert decode_single(_reader(b"OK TRACKING 12345\n"), selector) == expected


def test_single_line_quoted_value():
    assert decode_single(_reader(b'VAR dummy device.mfr "Dummy Manufacturer"\n')) == "Dummy Manufacturer"


def test_single_line_consumes_exactly_one_line():
    r = _reader(b"NUMLOGINS dummy 3\nOK\n")
    assert decode_single(r) == "3"
    assert r.read_line() == "OK"


def test_single_line_error():
    with pytest.raises(ProtocolError) as ei:
        decode_single(_reader(b"ERR UNKNOWN-UPS\n"))
    assert ei.value.code == "UNKNOWN-UPS"


def test_single_line_error_extra_is_ignored():
    with pytest.raises(ProtocolError) as ei:
        decode_single(_reader(b"ERR INVALID-ARGUMENT extra words\n"))
    assert ei.value.code == "INVALID-ARGUMENT"


def test_err_without_code_is_a_violation():
    with pytest.raises(ProtocolViolation):
        decode_single(_reader(b"ERR\n"))


def test_empty_reply_is_a_violation():
    with pytest.raises(ProtocolViolation):
        decode_single(_reader(b"\n"))


def test_bad_selector():
    with pytest.raises(ValueError):
        decode_single(_reader(b"OK\n"), -2)


@pytest.mark.parametrize("selector", [3, 4])
def test_selector_past_last_token_is_a_violation(selector):
    with pytest.raises(ProtocolViolation):
        decode_single(_reader(b"OK TRACKING 12345\n"), selector)


# ---- list ----
def test_list_two_fields():
    r = _reader(b'BEGIN LIST UPS\nUPS dummy "A test UPS"\nEND LIST UPS\n')
    rows = decode_list(r, list_command("UPS"), two_fields=True)
    assert rows == [("dummy", "A test UPS")]
    assert label_rows(rows, ["upsName", "upsDescription"]) == [
        {"upsName": "dummy", "upsDescription": "A test UPS"}
    ]


def test_list_single_field():
    r = _reader(b"BEGIN LIST CMD dummy\nCMD dummy beeper.disable\nCMD dummy test.battery.start\nEND LIST CMD dummy\n")
    rows = decode_list(r, list_command("CMD", "dummy"))
    assert rows == [("beeper.disable",), ("test.battery.start",)]


def test_empty_block():
    r = _reader(b"BEGIN LIST CLIENT dummy\nEND LIST CLIENT dummy\n")
    assert decode_list(r, list_command("CLIENT", "dummy")) == []


def test_lines_before_begin_are_discarded():
    r = _reader(b"noise\nBEGIN LIST UPS\nUPS a \"b\"\nEND LIST UPS\n")
    assert decode_list(r, list_command("UPS"), two_fields=True) == [("a", "b")]


def test_error_before_begin():
    r = _reader(b"ERR UNKNOWN-UPS\n")
    with pytest.raises(ProtocolError) as ei:
        decode_list(r, list_command("VAR", "nope"), two_fields=True)
    assert ei.value.code == "UNKNOWN-UPS"


def test_error_row_aborts_the_block():
    r = _reader(b'BEGIN LIST VAR dummy\nVAR dummy a "1"\nERR DATA-STALE\nVAR dummy b "2"\nEND LIST VAR dummy\n')
    with pytest.raises(ProtocolError) as ei:
        decode_list(r, list_command("VAR", "dummy"), two_fields=True)
    assert ei.value.code == "DATA-STALE"


def test_end_sentinel_must_match_exactly():
    # END for another UPS is just a row; the real END closes the block
    r = _reader(b"BEGIN LIST CMD a\nEND LIST CMD b\nEND LIST CMD a\n")
    assert decode_list(r, list_command("CMD", "a")) == [("b",)]


def test_short_row_is_a_violation():
    r = _reader(b"BEGIN LIST UPS\nlonely\nEND LIST UPS\n")
    with pytest.raises(ProtocolViolation):
        decode_list(r, list_command("UPS"), two_fields=True)


def test_truncated_block_is_a_transport_error():
    r = _reader(b'BEGIN LIST UPS\nUPS dummy "A test UPS"\n')
    with pytest.raises(TransportError):
        decode_list(r, list_command("UPS"), two_fields=True)


def test_label_rows_shape_mismatch():
    with pytest.raises(ShapeMismatch):
        label_rows([("a", "b")], ["only_one"])
