"""
Claim eligibility for time-gated bonus credits.

Two independent gates:

Daily bonus:
    A claim day starts at the configured reset hour (UTC) and lasts until the
    same hour the next day. With the default reset hour of 0 this is the UTC
    calendar date. An account may claim once per claim day: it is eligible
    iff it has never claimed, or its last claim fell on an earlier claim
    day. This is a day boundary, not a rolling 24-hour window.

Hourly accrual:
    A fixed tick of credits once at least one interval has elapsed since the
    last accrual. Only one tick is granted per request; elapsed intervals are
    never backfilled.

These functions are pure: they compare stored timestamps against a
caller-supplied `now`. Naive datetimes are treated as UTC.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum

from packvault.models.account import Account


class ClaimState(str, Enum):
    """Daily claim state of an account at a given instant."""

    NO_CLAIM_YET = "no_claim_yet"
    CLAIMED_TODAY = "claimed_today"
    ELIGIBLE_AGAIN = "eligible_again"


@dataclass(frozen=True, slots=True)
class ClaimDecision:
    """
    Result of evaluating a claim.

    On a grant, new_last_claim is `now` and wait_seconds is the time until
    the following window. On a refusal, amount is 0 and new_last_claim is
    the unchanged stored value.
    """

    granted: bool
    amount: int
    new_last_claim: datetime | None
    next_eligible_at: datetime
    wait_seconds: int


def as_utc(instant: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def _seconds_until(target: datetime, now: datetime) -> int:
    return max(0, int((target - now).total_seconds()))


# --- Daily claim ---


def claim_day(instant: datetime, reset_hour: int = 0) -> date:
    """The claim day an instant belongs to."""
    return (as_utc(instant) - timedelta(hours=reset_hour)).date()


def claim_window_start(now: datetime, reset_hour: int = 0) -> datetime:
    """Start of the claim day containing `now`."""
    day = claim_day(now, reset_hour)
    return datetime.combine(day, time(hour=reset_hour), tzinfo=UTC)


def next_daily_reset(now: datetime, reset_hour: int = 0) -> datetime:
    """First claim-day boundary strictly after `now`."""
    return claim_window_start(now, reset_hour) + timedelta(days=1)


def daily_claim_state(
    last_claim: datetime | None,
    now: datetime,
    reset_hour: int = 0,
) -> ClaimState:
    if last_claim is None:
        return ClaimState.NO_CLAIM_YET
    if claim_day(last_claim, reset_hour) < claim_day(now, reset_hour):
        return ClaimState.ELIGIBLE_AGAIN
    return ClaimState.CLAIMED_TODAY


def is_daily_claim_eligible(
    last_claim: datetime | None,
    now: datetime,
    reset_hour: int = 0,
) -> bool:
    """True iff the account has never claimed or last claimed on an earlier claim day."""
    return daily_claim_state(last_claim, now, reset_hour) is not ClaimState.CLAIMED_TODAY


def evaluate_daily_claim(
    account: Account,
    now: datetime,
    amount: int,
    reset_hour: int = 0,
) -> ClaimDecision:
    """
    Decide a daily claim for an account at `now`.

    Does not mutate the account; the ledger applies a granted decision.
    """
    now = as_utc(now)
    next_reset = next_daily_reset(now, reset_hour)

    if not is_daily_claim_eligible(account.last_daily_claim, now, reset_hour):
        return ClaimDecision(
            granted=False,
            amount=0,
            new_last_claim=account.last_daily_claim,
            next_eligible_at=next_reset,
            wait_seconds=_seconds_until(next_reset, now),
        )

    return ClaimDecision(
        granted=True,
        amount=amount,
        new_last_claim=now,
        next_eligible_at=next_reset,
        wait_seconds=_seconds_until(next_reset, now),
    )


# --- Hourly accrual ---


def next_hourly_accrual(last_earn: datetime, interval: timedelta) -> datetime:
    return as_utc(last_earn) + interval


def is_hourly_accrual_eligible(
    last_earn: datetime,
    now: datetime,
    interval: timedelta = timedelta(hours=1),
) -> bool:
    """True once at least `interval` has elapsed since the last accrual."""
    return as_utc(now) - as_utc(last_earn) >= interval


def evaluate_hourly_accrual(
    account: Account,
    now: datetime,
    amount: int,
    interval: timedelta = timedelta(hours=1),
) -> ClaimDecision:
    """
    Decide a passive accrual tick.

    Grants exactly one tick regardless of how many intervals have elapsed.
    """
    now = as_utc(now)

    if not is_hourly_accrual_eligible(account.last_credit_earn, now, interval):
        next_at = next_hourly_accrual(account.last_credit_earn, interval)
        return ClaimDecision(
            granted=False,
            amount=0,
            new_last_claim=account.last_credit_earn,
            next_eligible_at=next_at,
            wait_seconds=_seconds_until(next_at, now),
        )

    next_at = now + interval
    return ClaimDecision(
        granted=True,
        amount=amount,
        new_last_claim=now,
        next_eligible_at=next_at,
        wait_seconds=_seconds_until(next_at, now),
    )
