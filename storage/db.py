import sqlite3
from pathlib import Path

from loguru import logger

from core.exceptions import StorageUnavailable


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS review_items (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    content TEXT NOT NULL,
    file_name TEXT,
    added_date INTEGER NOT NULL,
    next_review_date INTEGER NOT NULL,
    last_reviewed_date INTEGER,
    interval INTEGER NOT NULL DEFAULT 1,
    ease_factor REAL NOT NULL DEFAULT 2.5,
    priority INTEGER NOT NULL DEFAULT 3
);
CREATE TABLE IF NOT EXISTS item_tags (
    item_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    tag TEXT NOT NULL,
    PRIMARY KEY (item_id, position),
    FOREIGN KEY(item_id) REFERENCES review_items(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS app_settings (
    id TEXT PRIMARY KEY,
    max_reviews_per_session INTEGER NOT NULL,
    initial_review_days INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_review_items_next_review_date ON review_items(next_review_date);
CREATE INDEX IF NOT EXISTS idx_review_items_type ON review_items(type);
CREATE INDEX IF NOT EXISTS idx_item_tags_tag ON item_tags(tag);
"""


def connect(db_path: Path, timeout: float = 5.0) -> sqlite3.Connection:
    """Connect to the SQLite database and create the schema.

    The connection runs in autocommit mode; the store opens explicit
    transactions around every write.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        conn = sqlite3.connect(str(db_path), timeout=timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(SCHEMA_SQL)
    except sqlite3.OperationalError as exc:
        logger.error("Failed to open database {}: {}", db_path, exc)
        raise StorageUnavailable(f"Cannot open database {db_path}: {exc}", kind="blocked") from exc
    logger.info("Database connection established: {}", db_path)
    return conn
