# Capture helpers
"""
Build new review items for the capture flows (manual entry, shared
content, file upload). Every new item gets its first schedule from the
scheduler before it is stored.
"""
import base64
import mimetypes
import re
import uuid
from pathlib import Path
from typing import Iterable, Optional

from core import DEFAULT_PRIORITY, AppSettings, ItemType, ReviewItem
from core.clock import Clock, SystemClock
from scheduler import compute_initial_state


URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


def detect_type(text: str) -> str:
    """A lone http(s) URL becomes a link, anything else a note."""
    return ItemType.LINK.value if URL_RE.match(text.strip()) else ItemType.NOTE.value


def parse_tags(raw: str) -> tuple[str, ...]:
    """Split a comma-separated tag string, dropping blanks."""
    return tuple(tag.strip() for tag in raw.split(",") if tag.strip())


def new_item(settings: AppSettings, item_type: str, content: str,
             priority: int = DEFAULT_PRIORITY, tags: Iterable[str] = (),
             file_name: Optional[str] = None, clock: Optional[Clock] = None) -> ReviewItem:
    now = (clock or SystemClock()).now()
    state = compute_initial_state(settings, priority, now=now)
    item = ReviewItem(
        id=str(uuid.uuid4()),
        type=item_type,
        content=content,
        file_name=file_name,
        added_date=now,
        next_review_date=state.next_review_date,
        interval=state.interval,
        ease_factor=state.ease_factor,
        priority=priority,
        tags=tuple(tags),
    )
    item.validate()
    return item


def read_as_data_url(path: Path, mime_type: str) -> str:
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def item_from_file(settings: AppSettings, path: Path, priority: int = DEFAULT_PRIORITY,
                   tags: Iterable[str] = (), clock: Optional[Clock] = None) -> ReviewItem:
    """Capture a file: images and PDFs are embedded as data URLs, other
    files are read as text notes."""
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    mime_type, _ = mimetypes.guess_type(path.name)
    mime_type = mime_type or "application/octet-stream"

    if mime_type.startswith("image/"):
        return new_item(settings, ItemType.IMAGE.value, read_as_data_url(path, mime_type),
                        priority, tags, file_name=path.name, clock=clock)
    if mime_type == "application/pdf":
        return new_item(settings, ItemType.PDF.value, read_as_data_url(path, mime_type),
                        priority, tags, file_name=path.name, clock=clock)

    text = path.read_text(encoding="utf-8")
    return new_item(settings, detect_type(text), text.strip(), priority, tags, clock=clock)
