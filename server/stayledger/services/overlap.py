"""Stay range overlap rules.

A stay occupies every calendar day from its check-in date through its
check-out date inclusive. Two stays that share only their boundary day are a
same-day turnover: the room can be re-let that day only if the departing
guest leaves before the house cutoff time.
"""

from dataclasses import dataclass
from datetime import date, time

DEFAULT_CHECKOUT_CUTOFF = time(11, 0)


@dataclass(frozen=True)
class StayRange:
    """A stay's dates plus the optional time the guest leaves on the last day."""

    check_in: date
    check_out: date
    check_out_time: time | None = None

    def __post_init__(self) -> None:
        if self.check_out < self.check_in:
            raise ValueError(f"check_out {self.check_out} is before check_in {self.check_in}")

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def departs_before(self, cutoff: time) -> bool:
        # An unknown departure time is treated as at or after the cutoff
        return self.check_out_time is not None and self.check_out_time < cutoff


def stays_overlap(a: StayRange, b: StayRange, cutoff: time = DEFAULT_CHECKOUT_CUTOFF) -> bool:
    """
    Return True if two stays on the same room conflict.

    Args:
        a: First stay
        b: Second stay
        cutoff: Latest departure time that still frees the room the same day

    Returns:
        True when the stays share an occupied day that is not a clean turnover
    """
    first_shared = max(a.check_in, b.check_in)
    last_shared = min(a.check_out, b.check_out)

    if first_shared > last_shared:
        return False
    if first_shared < last_shared:
        return True

    # Exactly one shared day: a turnover if one stay ends where the other begins
    departing = [
        leaving
        for leaving, arriving in ((a, b), (b, a))
        if leaving.check_out == first_shared and arriving.check_in == first_shared
    ]
    if not departing:
        return True

    return not any(stay.departs_before(cutoff) for stay in departing)


def request_conflicts(
    requested: StayRange,
    existing: StayRange,
    cutoff: time = DEFAULT_CHECKOUT_CUTOFF,
    today: date | None = None,
    past_dated_exempt: bool = True,
) -> bool:
    """
    Decide whether a requested stay collides with an existing one.

    Requests that check in before ``today`` never conflict while the
    past-dated exemption is on, so back-dated stays can always be entered.
    """
    if past_dated_exempt and today is not None and requested.check_in < today:
        return False
    return stays_overlap(requested, existing, cutoff)
