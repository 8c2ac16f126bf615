# Review actions
"""
Stateful operations behind the review and catalog views: postpone,
mark-read, reschedule to a date, priority edit and delete.

Each action is one atomic read-modify-write against the store.
"""
import datetime as dt
from dataclasses import replace
from typing import Optional

from loguru import logger

from core import ReviewItem
from core.clock import ONE_DAY_MS, Clock, SystemClock
from core.exceptions import InvalidItem
from scheduler import PrioritySM2Scheduler, Scheduler
from storage import ItemStore


def _format_ts(ts: int) -> str:
    return dt.datetime.fromtimestamp(ts / 1000).date().isoformat()


class ReviewActions:
    """Compose the scheduler and the item store into user-facing actions."""

    def __init__(self, store: ItemStore, clock: Optional[Clock] = None,
                 scheduler: Optional[Scheduler] = None):
        self.store = store
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or PrioritySM2Scheduler(self.clock)

    def postpone(self, item_id: str) -> ReviewItem:
        """Push the next review to one day from now. Interval and ease are kept."""
        now = self.clock.now()
        item = self.store.update(
            item_id, lambda current: replace(current, next_review_date=now + ONE_DAY_MS)
        )
        logger.info("Postponed item {} by 1 day.", item_id)
        return item

    def mark_read(self, item_id: str, quality: float) -> ReviewItem:
        """Record a completed review and reschedule with the scheduler.

        Raises:
            ItemNotFound: no item with this id
            SettingsUnavailable: the settings record is missing
        """
        now = self.clock.now()

        def review(current: ReviewItem) -> ReviewItem:
            settings = self.store.require_settings()
            result = self.scheduler.next_state(current, settings, quality, now=now)
            return replace(
                current,
                last_reviewed_date=now,
                next_review_date=result.next_review_date,
                interval=result.next_interval,
                ease_factor=result.next_ease_factor,
            )

        item = self.store.update(item_id, review)
        logger.info("Marked item {} as read. Next review in {} days.", item_id, item.interval)
        return item

    def schedule_for_date(self, item_id: str, timestamp: int) -> ReviewItem:
        """Set the next review date by hand, bypassing the scheduler.

        Timestamps in the past are moved up to now.
        """
        target = max(int(timestamp), self.clock.now())
        item = self.store.update(
            item_id, lambda current: replace(current, next_review_date=target)
        )
        logger.info("Item {} scheduled for {}", item_id, _format_ts(target))
        return item

    def set_priority(self, item_id: str, priority: int) -> ReviewItem:
        if not 1 <= priority <= 5:
            raise InvalidItem(f"Priority must be between 1 and 5, got {priority}")
        item = self.store.update(item_id, lambda current: replace(current, priority=priority))
        logger.info("Item {} priority set to {}", item_id, priority)
        return item

    def delete(self, item_id: str) -> None:
        self.store.delete(item_id)
