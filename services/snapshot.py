# Snapshot export/import
"""
Manual file-based backup of settings and review items.

Format: {"version": 1, "exportedAt": <ms>, "settings": {...},
"reviewItems": [...]}, using the camelCase item keys.
"""
import json
import math
from dataclasses import dataclass
from typing import Optional, Union

from loguru import logger

from core import (
    DEFAULT_EASE_FACTOR,
    DEFAULT_PRIORITY,
    MAX_EASE_FACTOR,
    MAX_INTERVAL_DAYS,
    MAX_TIMESTAMP,
    MIN_EASE_FACTOR,
    AppSettings,
    ItemType,
    ReviewItem,
)
from core.clock import Clock, SystemClock
from core.exceptions import InvalidImportFormat
from storage import ItemStore


SNAPSHOT_VERSION = 1


@dataclass
class ImportResult:
    items_imported: int = 0
    items_skipped: int = 0
    settings_imported: bool = False


def export_snapshot(store: ItemStore, clock: Optional[Clock] = None) -> dict:
    settings = store.get_settings() or AppSettings()
    return {
        "version": SNAPSHOT_VERSION,
        "exportedAt": (clock or SystemClock()).now(),
        "settings": settings.to_dict(),
        "reviewItems": [item.to_dict() for item in store.get_all()],
    }


def export_json(store: ItemStore, clock: Optional[Clock] = None) -> str:
    return json.dumps(export_snapshot(store, clock), indent=2, ensure_ascii=False)


def _positive_int(value, default: int, upper: int) -> int:
    """Whole number in 1..upper, or default when missing or out of range."""
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if 1 <= number <= upper else default


def _timestamp(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if 0 < number <= MAX_TIMESTAMP else default


def _ease_factor(value) -> float:
    try:
        ease = float(value)
    except (TypeError, ValueError):
        return DEFAULT_EASE_FACTOR
    if not math.isfinite(ease) or ease > MAX_EASE_FACTOR:
        return DEFAULT_EASE_FACTOR
    return max(MIN_EASE_FACTOR, ease)


def _backfill_item(raw: dict, initial_days: int, now: int) -> Optional[ReviewItem]:
    """Fill missing or out-of-range fields with defaults. None if unusable."""
    if not isinstance(raw, dict) or not raw.get("id") or not raw.get("content"):
        return None
    if not isinstance(raw.get("type"), str) or raw["type"] not in {t.value for t in ItemType}:
        return None

    file_name = raw.get("fileName")
    tags = raw.get("tags") if isinstance(raw.get("tags"), list) else []
    last_reviewed = raw.get("lastReviewedDate")

    return ReviewItem.from_dict({
        "id": raw["id"],
        "type": raw["type"],
        "content": raw["content"],
        "fileName": file_name if isinstance(file_name, str) else None,
        "addedDate": _timestamp(raw.get("addedDate"), now),
        "nextReviewDate": _timestamp(raw.get("nextReviewDate"), now),
        "lastReviewedDate": _timestamp(last_reviewed, now) if last_reviewed else None,
        "interval": _positive_int(raw.get("interval"), initial_days, MAX_INTERVAL_DAYS),
        "easeFactor": _ease_factor(raw.get("easeFactor") or DEFAULT_EASE_FACTOR),
        "priority": _positive_int(raw.get("priority"), DEFAULT_PRIORITY, 5),
        "tags": [str(tag) for tag in tags],
    })


def import_snapshot(store: ItemStore, data: Union[str, bytes, dict],
                    clock: Optional[Clock] = None) -> ImportResult:
    """Import a snapshot, overwriting settings and items with matching ids.

    The whole import runs in one transaction: a malformed snapshot or a
    storage failure leaves the store untouched. Individual records with no
    id, type or content are skipped, and out-of-range numbers are
    replaced by defaults.

    Raises:
        InvalidImportFormat: the document is not JSON or lacks the
            ``reviewItems`` array or the ``settings`` object, or a record
            holds values that cannot be read
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as exc:
            raise InvalidImportFormat(f"Invalid JSON format: {exc}") from exc

    if not isinstance(data, dict):
        raise InvalidImportFormat("Invalid import file format: Not an object.")
    if not isinstance(data.get("reviewItems"), list):
        raise InvalidImportFormat("Invalid import file format: Missing or invalid 'reviewItems' array.")
    if not isinstance(data.get("settings"), dict):
        raise InvalidImportFormat("Invalid import file format: Missing or invalid 'settings' object.")

    try:
        settings = AppSettings.from_dict(data["settings"])
        settings.validate()
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidImportFormat(f"Invalid settings: {exc}") from exc

    now = (clock or SystemClock()).now()
    result = ImportResult()
    with store.transaction(immediate=True):
        store.put_settings(settings)
        result.settings_imported = True
        for raw in data["reviewItems"]:
            raw_id = raw.get("id") if isinstance(raw, dict) else raw
            try:
                item = _backfill_item(raw, settings.initial_review_days, now)
            except (TypeError, OverflowError) as exc:
                raise InvalidImportFormat(f"Invalid item {raw_id!r}: {exc}") from exc
            if item is None:
                logger.warning("Skipping invalid item during import: {!r}", raw_id)
                result.items_skipped += 1
                continue
            store.put(item)
            result.items_imported += 1

    logger.info("Imported {} items, skipped {}.", result.items_imported, result.items_skipped)
    return result
