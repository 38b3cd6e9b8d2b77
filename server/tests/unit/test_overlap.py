"""Unit tests for stay overlap rules."""

from datetime import date, time

import pytest

from stayledger.services.overlap import StayRange, request_conflicts, stays_overlap

CUTOFF = time(11, 0)


def stay(check_in: str, check_out: str, check_out_time: time | None = None) -> StayRange:
    return StayRange(date.fromisoformat(check_in), date.fromisoformat(check_out), check_out_time)


def test_disjoint_stays_do_not_overlap():
    assert not stays_overlap(stay("2024-03-01", "2024-03-03"), stay("2024-03-05", "2024-03-07"))


def test_stays_sharing_several_days_overlap():
    assert stays_overlap(stay("2024-03-01", "2024-03-03"), stay("2024-03-02", "2024-03-04"))


def test_contained_stay_overlaps():
    assert stays_overlap(stay("2024-03-01", "2024-03-10"), stay("2024-03-04", "2024-03-05"))


def test_turnover_with_early_departure_is_allowed():
    """Departing guest leaves at 10:00, before the 11:00 cutoff."""
    existing = stay("2024-03-01", "2024-03-03", time(10, 0))
    requested = stay("2024-03-03", "2024-03-05")

    assert not stays_overlap(requested, existing, CUTOFF)
    assert not stays_overlap(existing, requested, CUTOFF)


@pytest.mark.parametrize("departure", [time(11, 0), time(14, 30), None])
def test_turnover_at_or_after_cutoff_conflicts(departure):
    """Leaving at the cutoff, later, or at an unknown time keeps the room blocked."""
    existing = stay("2024-03-01", "2024-03-03", departure)
    requested = stay("2024-03-03", "2024-03-05")

    assert stays_overlap(requested, existing, CUTOFF)


def test_requested_stay_departing_early_frees_room_for_existing_arrival():
    """The requested stay is the one leaving on the shared day."""
    existing = stay("2024-03-05", "2024-03-07")
    requested = stay("2024-03-03", "2024-03-05", time(9, 0))

    assert not stays_overlap(requested, existing, CUTOFF)


def test_zero_night_stays_on_same_day_conflict():
    """Two day-use stays on the same date share a day that is nobody's turnover."""
    assert stays_overlap(stay("2024-03-03", "2024-03-03"), stay("2024-03-03", "2024-03-03"))


def test_zero_night_stay_on_departure_day_of_early_leaver():
    existing = stay("2024-03-01", "2024-03-03", time(8, 0))
    day_use = stay("2024-03-03", "2024-03-03")

    assert not stays_overlap(day_use, existing, CUTOFF)


def test_custom_cutoff_is_respected():
    existing = stay("2024-03-01", "2024-03-03", time(12, 0))
    requested = stay("2024-03-03", "2024-03-05")

    assert stays_overlap(requested, existing, time(11, 0))
    assert not stays_overlap(requested, existing, time(13, 0))


def test_stay_range_rejects_reversed_dates():
    with pytest.raises(ValueError):
        stay("2024-03-05", "2024-03-01")


def test_stay_range_nights():
    assert stay("2024-03-01", "2024-03-04").nights == 3
    assert stay("2024-03-01", "2024-03-01").nights == 0


def test_past_dated_request_never_conflicts():
    existing = stay("2024-02-01", "2024-02-10")
    requested = stay("2024-02-03", "2024-02-05")
    today = date(2024, 3, 1)

    assert not request_conflicts(requested, existing, CUTOFF, today=today)


def test_past_dated_exemption_can_be_disabled():
    existing = stay("2024-02-01", "2024-02-10")
    requested = stay("2024-02-03", "2024-02-05")
    today = date(2024, 3, 1)

    assert request_conflicts(requested, existing, CUTOFF, today=today, past_dated_exempt=False)


def test_request_checking_in_today_is_not_exempt():
    existing = stay("2024-03-01", "2024-03-04")
    requested = stay("2024-03-01", "2024-03-02")

    assert request_conflicts(requested, existing, CUTOFF, today=date(2024, 3, 1))
