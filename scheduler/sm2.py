"""Priority-weighted SM-2 style review scheduling.

This module is pure: it reads an item, the app settings, a recall quality
and the current time, and returns the new scheduling values. Nothing is
persisted here and malformed numbers fall back to defaults instead of
raising.
"""
import math
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from loguru import logger

from core import (
    DEFAULT_EASE_FACTOR,
    DEFAULT_INITIAL_REVIEW_DAYS,
    DEFAULT_PRIORITY,
    MAX_EASE_FACTOR,
    MAX_INTERVAL_DAYS,
    MIN_EASE_FACTOR,
    AppSettings,
    ReviewState,
)
from core.clock import ONE_DAY_MS, Clock, SystemClock


PASSING_QUALITY = 3
PERFECT_QUALITY = 5
FAILED_EASE_PENALTY = 0.20
FIRST_REVIEW_MULTIPLIER = 2.5
FIRST_REVIEW_PERFECT_MULTIPLIER = 4


class Scheduler(Protocol):
    """Protocol for review schedulers."""

    def initial_state(self, settings: AppSettings, priority: int = DEFAULT_PRIORITY,
                      now: Optional[int] = None) -> "InitialState":
        ...

    def next_state(self, item: Any, settings: AppSettings, quality: float,
                   now: Optional[int] = None) -> "ReviewResult":
        ...


@dataclass(frozen=True)
class InitialState:
    """Scheduling fields for a freshly captured item."""
    next_review_date: int
    interval: int
    ease_factor: float


@dataclass(frozen=True)
class ReviewResult:
    """Result of a review scheduling calculation."""
    next_review_date: int
    next_interval: int
    next_ease_factor: float


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _number(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _bounded(value: Any, default: float, low: float, high: float) -> float:
    return min(high, max(low, _number(value, default)))


def _initial_days(settings: Optional[AppSettings]) -> float:
    days = _number(getattr(settings, "initial_review_days", None), DEFAULT_INITIAL_REVIEW_DAYS)
    if days < 1:
        return DEFAULT_INITIAL_REVIEW_DAYS
    return min(days, MAX_INTERVAL_DAYS)


def priority_multiplier(priority: float) -> float:
    """P1 -> 0.9, P3 -> 1.0, P5 -> 1.1. Important items grow more slowly."""
    return 1 + (priority - 3) * 0.05


def compute_initial_state(settings: AppSettings, priority: int = DEFAULT_PRIORITY,
                          now: Optional[int] = None, clock: Optional[Clock] = None) -> InitialState:
    """Return the first scheduling state for a new item.

    Priority is accepted for interface symmetry but does not change the
    first interval; only ``initial_review_days`` does.
    """
    if now is None:
        now = (clock or SystemClock()).now()
    interval = int(_initial_days(settings))
    return InitialState(
        next_review_date=round_half_up(now + interval * ONE_DAY_MS),
        interval=interval,
        ease_factor=DEFAULT_EASE_FACTOR,
    )


def compute_next_state(item: Any, settings: AppSettings, quality: float,
                       now: Optional[int] = None, clock: Optional[Clock] = None) -> ReviewResult:
    """Calculate the next schedule for an item after a review.

    Args:
        item: The reviewed item. Missing or malformed ``interval``,
            ``ease_factor`` and ``priority`` fall back to defaults.
        settings: App settings; ``initial_review_days`` is the baseline
            interval for new and failed items.
        quality: Recall quality (0-5)
            0-2 - Failed recall, interval resets and ease drops by 0.2
            3   - Correct with serious difficulty
            4   - Correct after hesitation
            5   - Perfect recall
        now: Current time in epoch ms, read from ``clock`` when omitted

    Returns:
        ReviewResult with the new due date, interval and ease factor
    """
    if now is None:
        now = (clock or SystemClock()).now()

    initial_days = _initial_days(settings)
    current_interval = _bounded(getattr(item, "interval", None), initial_days, 0, MAX_INTERVAL_DAYS)
    current_ease = _bounded(getattr(item, "ease_factor", None), DEFAULT_EASE_FACTOR, 0, MAX_EASE_FACTOR)
    priority = _bounded(getattr(item, "priority", None), DEFAULT_PRIORITY, 1, 5)
    quality = min(PERFECT_QUALITY, max(0.0, _number(quality, PASSING_QUALITY)))

    if quality < PASSING_QUALITY:
        next_interval = round_half_up(initial_days)
        next_ease = max(MIN_EASE_FACTOR, current_ease - FAILED_EASE_PENALTY)
    else:
        first_review = (
            current_interval <= initial_days
            and ReviewState.of(getattr(item, "last_reviewed_date", None)) is ReviewState.NEVER_REVIEWED
        )
        if first_review:
            multiplier = FIRST_REVIEW_PERFECT_MULTIPLIER if quality == PERFECT_QUALITY else FIRST_REVIEW_MULTIPLIER
            next_interval = round_half_up(initial_days * multiplier)
        else:
            next_interval = round_half_up(current_interval * current_ease * priority_multiplier(priority))
        miss = PERFECT_QUALITY - quality
        next_ease = current_ease + (0.1 - miss * (0.08 + miss * 0.02))
        next_ease = max(MIN_EASE_FACTOR, next_ease)

    next_interval = min(MAX_INTERVAL_DAYS, max(1, next_interval))
    next_ease = min(MAX_EASE_FACTOR, next_ease)
    next_ease = round(next_ease, 2)

    logger.debug(
        "Scheduler: item {}, P{:g}, Q{:g}, interval {:g} -> {}, EF {:.2f} -> {:.2f}",
        getattr(item, "id", "?"), priority, quality, current_interval, next_interval, current_ease, next_ease,
    )

    return ReviewResult(
        next_review_date=round_half_up(now + next_interval * ONE_DAY_MS),
        next_interval=next_interval,
        next_ease_factor=next_ease,
    )


class PrioritySM2Scheduler:
    """Scheduler object wrapping the module functions, for injection."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    def initial_state(self, settings: AppSettings, priority: int = DEFAULT_PRIORITY,
                      now: Optional[int] = None) -> InitialState:
        return compute_initial_state(settings, priority, now=now, clock=self.clock)

    def next_state(self, item: Any, settings: AppSettings, quality: float,
                   now: Optional[int] = None) -> ReviewResult:
        return compute_next_state(item, settings, quality, now=now, clock=self.clock)
