"""
Unit tests -- shared utilities.
"""
from cube_query.core.utils import epoch_ms_to_iso, timer


def test_epoch_ms_to_iso():
    assert epoch_ms_to_iso("1704067200000") == "2024-01-01T00:00:00.000Z"
    assert epoch_ms_to_iso(" 1704067200999 ") == "2024-01-01T00:00:00.999Z"
    assert epoch_ms_to_iso("0") == "1970-01-01T00:00:00.000Z"


def test_epoch_ms_to_iso_rejects_garbage():
    assert epoch_ms_to_iso("now-6h") is None
    assert epoch_ms_to_iso("") is None
    assert epoch_ms_to_iso("1.5") is None
    assert epoch_ms_to_iso("99999999999999999999") is None


def test_epoch_ms_to_iso_rejects_non_decimal_integer_forms():
    assert epoch_ms_to_iso("1_704_067_200_000") is None
    assert epoch_ms_to_iso("０") is None
    assert epoch_ms_to_iso("0x10") is None
    assert epoch_ms_to_iso(None) is None


def test_timer_records_elapsed():
    with timer() as t:
        sum(range(1000))
    assert t["elapsed_ms"] >= 0
