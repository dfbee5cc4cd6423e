"""Tests for trending_reads.dates."""

import pytest

from trending_reads.dates import from_epoch, parse_dt, to_iso


def test_parse_dt_normalizes_to_utc() -> None:
    assert to_iso(parse_dt("Mon, 12 Oct 2026 09:30:00 EST")) == "2026-10-12T14:30:00Z"
    assert to_iso(parse_dt("2026-10-17 06:00:00")) == "2026-10-17T06:00:00Z"


@pytest.mark.parametrize("value", [None, "", "not a date", 1792227600, ["2026-10-17"], {"at": "noon"}])
def test_parse_dt_rejects_garbage(value) -> None:
    assert parse_dt(value) is None


@pytest.mark.parametrize("value", [None, "n/a", {"when": "yesterday"}, float("inf")])
def test_from_epoch_rejects_garbage(value) -> None:
    assert from_epoch(value) is None
