# Domain models
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .exceptions import InvalidItem


DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
DEFAULT_PRIORITY = 3
DEFAULT_INITIAL_REVIEW_DAYS = 1
DEFAULT_MAX_REVIEWS_PER_SESSION = 10
SETTINGS_KEY = "defaultSettings"

# Upper bounds keep every stored number inside the SQLite INTEGER range.
MAX_INTEGER = 2**63 - 1
MAX_TIMESTAMP = 8_640_000_000_000_000
MAX_INTERVAL_DAYS = 36_500
MAX_EASE_FACTOR = 100.0


class ItemType(str, Enum):
    NOTE = "note"
    LINK = "link"
    IMAGE = "image"
    PDF = "pdf"


class ReviewState(str, Enum):
    """Whether an item has completed at least one mark-read review."""
    NEVER_REVIEWED = "never_reviewed"
    REVIEWED = "reviewed"

    @classmethod
    def of(cls, last_reviewed_date) -> "ReviewState":
        if not last_reviewed_date:
            return cls.NEVER_REVIEWED
        return cls.REVIEWED


@dataclass(frozen=True)
class ReviewItem:
    """Core domain model for a captured item under spaced review.

    Timestamps are integer milliseconds since the epoch. Records are
    immutable; build a changed copy with ``dataclasses.replace``.
    """
    id: str
    type: str
    content: str
    added_date: int
    next_review_date: int
    interval: int = 1
    ease_factor: float = DEFAULT_EASE_FACTOR
    priority: int = DEFAULT_PRIORITY
    file_name: Optional[str] = None
    last_reviewed_date: Optional[int] = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def review_state(self) -> ReviewState:
        return ReviewState.of(self.last_reviewed_date)

    def is_due(self, now: int) -> bool:
        return self.next_review_date <= now

    def validate(self) -> None:
        """Raise InvalidItem if the record breaks a model invariant."""
        if not self.id:
            raise InvalidItem("Item id must not be empty.")
        if self.type not in {t.value for t in ItemType}:
            raise InvalidItem(f"Unknown item type: {self.type!r}")
        if not 1 <= self.interval <= MAX_INTERVAL_DAYS:
            raise InvalidItem(f"Interval must be between 1 and {MAX_INTERVAL_DAYS} days, got {self.interval}")
        if not MIN_EASE_FACTOR <= self.ease_factor <= MAX_EASE_FACTOR:
            raise InvalidItem(
                f"Ease factor must be between {MIN_EASE_FACTOR} and {MAX_EASE_FACTOR}, got {self.ease_factor}"
            )
        if not 1 <= self.priority <= 5:
            raise InvalidItem(f"Priority must be between 1 and 5, got {self.priority}")
        for name in ("added_date", "next_review_date", "last_reviewed_date"):
            value = getattr(self, name)
            if value is not None and abs(value) > MAX_TIMESTAMP:
                raise InvalidItem(f"{name} is out of range: {value}")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "addedDate": self.added_date,
            "nextReviewDate": self.next_review_date,
            "interval": self.interval,
            "easeFactor": self.ease_factor,
            "priority": self.priority,
            "tags": list(self.tags),
        }
        if self.file_name is not None:
            data["fileName"] = self.file_name
        if self.last_reviewed_date is not None:
            data["lastReviewedDate"] = self.last_reviewed_date
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ReviewItem":
        last_reviewed = data.get("lastReviewedDate")
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            content=str(data["content"]),
            added_date=int(data["addedDate"]),
            next_review_date=int(data["nextReviewDate"]),
            interval=int(data.get("interval", 1)),
            ease_factor=float(data.get("easeFactor", DEFAULT_EASE_FACTOR)),
            priority=int(data.get("priority", DEFAULT_PRIORITY)),
            file_name=data.get("fileName") or None,
            last_reviewed_date=int(last_reviewed) if last_reviewed else None,
            tags=tuple(data.get("tags") or ()),
        )


@dataclass(frozen=True)
class AppSettings:
    """Process-wide settings, stored as a single record."""
    max_reviews_per_session: int = DEFAULT_MAX_REVIEWS_PER_SESSION
    initial_review_days: int = DEFAULT_INITIAL_REVIEW_DAYS

    def validate(self) -> None:
        if not 1 <= self.initial_review_days <= MAX_INTERVAL_DAYS:
            raise ValueError(
                f"initial_review_days must be between 1 and {MAX_INTERVAL_DAYS}, got {self.initial_review_days}"
            )
        if not 1 <= self.max_reviews_per_session <= MAX_INTEGER:
            raise ValueError(f"max_reviews_per_session must be at least 1, got {self.max_reviews_per_session}")

    def to_dict(self) -> dict:
        return {
            "id": SETTINGS_KEY,
            "maxReviewsPerSession": self.max_reviews_per_session,
            "initialReviewDays": self.initial_review_days,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        return cls(
            max_reviews_per_session=int(data.get("maxReviewsPerSession") or DEFAULT_MAX_REVIEWS_PER_SESSION),
            initial_review_days=int(data.get("initialReviewDays") or DEFAULT_INITIAL_REVIEW_DAYS),
        )
