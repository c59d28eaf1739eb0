"""Adaptive review interval policy.

The interval is a closed ordered set of day counts. ``IMMEDIATE`` sits below
the ladder and means "due again within the hour".
"""
from datetime import datetime, timedelta
from enum import IntEnum

IMMEDIATE_RETRY_THRESHOLD = 50
NEEDS_PRACTICE_THRESHOLD = 60
MASTERY_THRESHOLD = 80
IMMEDIATE_RETRY_DELAY = timedelta(hours=1)


class Interval(IntEnum):
    IMMEDIATE = 0
    ONE_DAY = 1
    THREE_DAYS = 3
    FIVE_DAYS = 5
    ONE_WEEK = 7
    TWO_WEEKS = 15
    ONE_MONTH = 30

    @classmethod
    def parse(cls, days: int) -> "Interval":
        try:
            return cls(days)
        except ValueError:
            raise ValueError(f"{days} is not a valid review interval; expected one of {[i.value for i in cls]}") from None

    def step_up(self) -> "Interval":
        if self is Interval.IMMEDIATE:
            return Interval.ONE_DAY
        position = LADDER.index(self)
        return LADDER[min(position + 1, len(LADDER) - 1)]

    def step_down(self) -> "Interval":
        if self is Interval.IMMEDIATE:
            return Interval.ONE_DAY
        position = LADDER.index(self)
        return LADDER[max(position - 1, 0)]

    @staticmethod
    def immediate() -> "Interval":
        return Interval.IMMEDIATE

    def due_after(self, reviewed_at: datetime) -> datetime:
        if self is Interval.IMMEDIATE:
            return reviewed_at + IMMEDIATE_RETRY_DELAY
        return reviewed_at + timedelta(days=int(self))


LADDER = (
    Interval.ONE_DAY,
    Interval.THREE_DAYS,
    Interval.FIVE_DAYS,
    Interval.ONE_WEEK,
    Interval.TWO_WEEKS,
    Interval.ONE_MONTH,
)

DEFAULT_INTERVAL = Interval.THREE_DAYS


def strategy_for(score: int) -> str:
    if score < IMMEDIATE_RETRY_THRESHOLD:
        return "immediate-retry"
    if score >= MASTERY_THRESHOLD:
        return "increase"
    if score < NEEDS_PRACTICE_THRESHOLD:
        return "decrease"
    return "maintain"


def next_interval(current: Interval, score: int) -> Interval:
    strategy = strategy_for(score)
    if strategy == "immediate-retry":
        return Interval.immediate()
    if strategy == "increase":
        return current.step_up()
    if strategy == "decrease":
        return current.step_down()
    return current
