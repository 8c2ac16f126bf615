import json
import sqlite3
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from loguru import logger

from core import SETTINGS_KEY, AppSettings, ReviewItem
from core.exceptions import InvalidItem, ItemNotFound, SettingsUnavailable, StorageUnavailable


ITEM_COLUMNS = (
    "id, type, content, file_name, added_date, next_review_date, "
    "last_reviewed_date, interval, ease_factor, priority"
)

SELECT_ITEMS = f"""
    SELECT {ITEM_COLUMNS},
        (SELECT json_group_array(tag) FROM (
            SELECT tag FROM item_tags WHERE item_id = review_items.id ORDER BY position
        )) AS tags_json
    FROM review_items
"""


@dataclass(frozen=True)
class StorageEvent:
    """Notification that the storage engine refused or lost the connection.

    kind is "blocked" when another connection holds the database lock and
    "terminated" when the connection is closed or the engine failed.
    """
    kind: str
    message: str


StorageListener = Callable[[StorageEvent], None]


def _row_to_item(row: sqlite3.Row) -> ReviewItem:
    tags = json.loads(row["tags_json"]) if row["tags_json"] else []
    return ReviewItem(
        id=row["id"],
        type=row["type"],
        content=row["content"],
        file_name=row["file_name"],
        added_date=row["added_date"],
        next_review_date=row["next_review_date"],
        last_reviewed_date=row["last_reviewed_date"],
        interval=row["interval"],
        ease_factor=row["ease_factor"],
        priority=row["priority"],
        tags=tuple(tags),
    )


class ItemStore:
    """Repository for review items and the settings record.

    Every write is a full-record replace inside a transaction. Engine
    failures are reported to listeners and raised as StorageUnavailable.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._listeners: list[StorageListener] = []
        self._depth = 0

    # --- storage events ---

    def add_listener(self, listener: StorageListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StorageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _unavailable(self, exc: sqlite3.Error) -> StorageUnavailable:
        message = str(exc)
        lowered = message.lower()
        kind = "blocked" if "locked" in lowered or "busy" in lowered else "terminated"
        logger.error("Database connection {}: {}", kind, message)
        event = StorageEvent(kind=kind, message=message)
        for listener in list(self._listeners):
            listener(event)
        if kind == "blocked":
            text = "Database is blocked by another instance. Close it and try again."
        else:
            text = "Database connection was terminated. Reopen the application."
        return StorageUnavailable(f"{text} ({message})", kind=kind)

    def _error(self, exc: sqlite3.Error) -> Exception:
        if isinstance(exc, sqlite3.IntegrityError):
            return InvalidItem(str(exc))
        return self._unavailable(exc)

    @contextmanager
    def transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Group writes into one transaction. Nested calls join the outer one."""
        if self._depth:
            self._depth += 1
            try:
                yield self.conn
            finally:
                self._depth -= 1
            return

        try:
            self.conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        except sqlite3.Error as exc:
            raise self._error(exc) from exc

        self._depth = 1
        try:
            yield self.conn
            self.conn.execute("COMMIT")
        except sqlite3.Error as exc:
            self._rollback()
            raise self._error(exc) from exc
        except BaseException:
            self._rollback()
            raise
        finally:
            self._depth = 0

    def _rollback(self) -> None:
        # A failure here must not mask the error already propagating.
        with suppress(sqlite3.Error):
            if self.conn.in_transaction:
                self.conn.execute("ROLLBACK")

    def _fetch(self, query: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise self._error(exc) from exc

    # --- items ---

    def put(self, item: ReviewItem) -> None:
        """Insert or fully overwrite an item by id."""
        item.validate()
        with self.transaction(immediate=True) as conn:
            existing = conn.execute("SELECT type FROM review_items WHERE id = ?", (item.id,)).fetchone()
            if existing and existing["type"] != item.type:
                raise InvalidItem(
                    f"Item {item.id} is a {existing['type']}; type cannot change to {item.type}"
                )
            conn.execute(
                f"""
                INSERT INTO review_items ({ITEM_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    content = excluded.content,
                    file_name = excluded.file_name,
                    added_date = excluded.added_date,
                    next_review_date = excluded.next_review_date,
                    last_reviewed_date = excluded.last_reviewed_date,
                    interval = excluded.interval,
                    ease_factor = excluded.ease_factor,
                    priority = excluded.priority
                """,
                (
                    item.id,
                    item.type,
                    item.content,
                    item.file_name,
                    item.added_date,
                    item.next_review_date,
                    item.last_reviewed_date,
                    item.interval,
                    item.ease_factor,
                    item.priority,
                ),
            )
            conn.execute("DELETE FROM item_tags WHERE item_id = ?", (item.id,))
            conn.executemany(
                "INSERT INTO item_tags (item_id, position, tag) VALUES (?, ?, ?)",
                [(item.id, position, tag) for position, tag in enumerate(item.tags)],
            )

    def get(self, item_id: str) -> Optional[ReviewItem]:
        rows = self._fetch(SELECT_ITEMS + " WHERE id = ?", (item_id,))
        if rows:
            return _row_to_item(rows[0])
        return None

    def get_all(self) -> list[ReviewItem]:
        """All items, in no particular order."""
        return [_row_to_item(row) for row in self._fetch(SELECT_ITEMS)]

    def get_due(self, now: int) -> list[ReviewItem]:
        """Items with next_review_date <= now, earliest first, via the date index."""
        rows = self._fetch(
            SELECT_ITEMS + " WHERE next_review_date <= ? ORDER BY next_review_date ASC, id ASC",
            (now,),
        )
        return [_row_to_item(row) for row in rows]

    def get_by_tag(self, tag: str) -> list[ReviewItem]:
        rows = self._fetch(
            SELECT_ITEMS + " WHERE id IN (SELECT item_id FROM item_tags WHERE tag = ?)",
            (tag,),
        )
        return [_row_to_item(row) for row in rows]

    def get_by_type(self, item_type: str) -> list[ReviewItem]:
        rows = self._fetch(SELECT_ITEMS + " WHERE type = ?", (item_type,))
        return [_row_to_item(row) for row in rows]

    def update(self, item_id: str, change: Callable[[ReviewItem], ReviewItem]) -> ReviewItem:
        """Atomic read-modify-write of one item.

        The write lock is taken before the read, so no other connection can
        replace the record in between.
        """
        with self.transaction(immediate=True):
            item = self.get(item_id)
            if item is None:
                raise ItemNotFound(item_id)
            updated = change(item)
            self.put(updated)
        return updated

    def delete(self, item_id: str) -> None:
        """Delete an item and its tags. Unknown ids are ignored."""
        with self.transaction(immediate=True) as conn:
            conn.execute("DELETE FROM review_items WHERE id = ?", (item_id,))
        logger.info("Deleted item: {}", item_id)

    # --- settings ---

    def get_settings(self) -> Optional[AppSettings]:
        rows = self._fetch(
            "SELECT max_reviews_per_session, initial_review_days FROM app_settings WHERE id = ?",
            (SETTINGS_KEY,),
        )
        if not rows:
            return None
        return AppSettings(
            max_reviews_per_session=rows[0]["max_reviews_per_session"],
            initial_review_days=rows[0]["initial_review_days"],
        )

    def require_settings(self) -> AppSettings:
        settings = self.get_settings()
        if settings is None:
            raise SettingsUnavailable()
        return settings

    def put_settings(self, settings: AppSettings) -> None:
        settings.validate()
        with self.transaction(immediate=True) as conn:
            conn.execute(
                """
                INSERT INTO app_settings (id, max_reviews_per_session, initial_review_days)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    max_reviews_per_session = excluded.max_reviews_per_session,
                    initial_review_days = excluded.initial_review_days
                """,
                (SETTINGS_KEY, settings.max_reviews_per_session, settings.initial_review_days),
            )
        logger.info("Saved settings.")

    def initialize_defaults_if_absent(self) -> bool:
        """Write default settings on first run. Returns True if it wrote them."""
        defaults = AppSettings()
        with self.transaction(immediate=True) as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO app_settings (id, max_reviews_per_session, initial_review_days) "
                "VALUES (?, ?, ?)",
                (SETTINGS_KEY, defaults.max_reviews_per_session, defaults.initial_review_days),
            )
        created = cursor.rowcount == 1
        if created:
            logger.info("Default settings initialized.")
        return created

    def close(self) -> None:
        self.conn.close()
