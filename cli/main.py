#!/usr/bin/env python3
"""Resurface CLI - capture items and review them on a spaced schedule."""
import argparse
import datetime as dt
import sys
from dataclasses import replace
from pathlib import Path

from loguru import logger

from core import ItemType, ReviewItem
from core.clock import SystemClock
from core.config import load_config
from core.exceptions import ReviewError
from core.log import configure_logging
from services.capture import detect_type, item_from_file, new_item, parse_tags
from services.review_actions import ReviewActions
from services.snapshot import export_json, import_snapshot
from storage import ItemStore, connect


SORT_KEYS = {
    "addedDesc": (lambda item: item.added_date, True),
    "addedAsc": (lambda item: item.added_date, False),
    "reviewAsc": (lambda item: item.next_review_date, False),
    "reviewDesc": (lambda item: item.next_review_date, True),
    "priorityAsc": (lambda item: item.priority, False),
    "priorityDesc": (lambda item: item.priority, True),
}


def iso_date(ts: int) -> str:
    return dt.datetime.fromtimestamp(ts / 1000).date().isoformat()


def parse_date(value: str) -> int:
    """YYYY-MM-DD in local time -> epoch ms at midnight."""
    day = dt.datetime.strptime(value, "%Y-%m-%d")
    return int(day.timestamp() * 1000)


def preview(item: ReviewItem, width: int = 60) -> str:
    if item.type in (ItemType.IMAGE.value, ItemType.PDF.value):
        return item.file_name or item.type
    text = " ".join(item.content.split())
    return text if len(text) <= width else text[:width] + "..."


def sort_items(items: list[ReviewItem], sort_by: str) -> list[ReviewItem]:
    key, reverse = SORT_KEYS[sort_by]
    return sorted(items, key=key, reverse=reverse)


def add_item(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    settings = store.require_settings()
    tags = parse_tags(args.tags)
    if args.file:
        item = item_from_file(settings, Path(args.file), args.priority, tags, clock=actions.clock)
    else:
        text = args.text.strip()
        if not text:
            raise ValueError("Content cannot be empty.")
        item = new_item(settings, detect_type(text), text, args.priority, tags, clock=actions.clock)
    store.put(item)
    print(f"Added {item.type} {item.id}, first review on {iso_date(item.next_review_date)}.")


def list_items(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    if args.due:
        items = store.get_due(actions.clock.now())
    elif args.tag:
        items = store.get_by_tag(args.tag)
    elif args.type:
        items = store.get_by_type(args.type)
    else:
        items = store.get_all()

    if args.due and args.tag:
        items = [item for item in items if args.tag in item.tags]
    if (args.due or args.tag) and args.type:
        items = [item for item in items if item.type == args.type]

    items = sort_items(items, args.sort)
    if args.limit:
        items = items[:args.limit]

    if not items:
        print("No items.")
        return

    now = actions.clock.now()
    for item in items:
        tags = f" #{' #'.join(item.tags)}" if item.tags else ""
        due = "due now" if item.is_due(now) else f"due {iso_date(item.next_review_date)}"
        print(
            f"[{item.id}] {item.type} P{item.priority} ({due}) "
            f"interval={item.interval}d ease={item.ease_factor:.2f}\n"
            f"{preview(item)}{tags}\n"
        )


def review(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    settings = store.require_settings()
    limit = args.limit or settings.max_reviews_per_session
    items = store.get_due(actions.clock.now())[:limit]

    if not items:
        print("No items due for review.")
        return

    reviewed = 0
    for item in items:
        print(f"\n[{item.id}] {item.type} P{item.priority}")
        print(item.content if item.type in (ItemType.NOTE.value, ItemType.LINK.value) else preview(item))

        if args.quality is None:
            raw = input("Score recall 0-5, p to postpone, q to quit: ").strip().lower()
            if raw == "q":
                break
            if raw == "p":
                actions.postpone(item.id)
                print("Postponed by 1 day.")
                continue
            if raw not in {"0", "1", "2", "3", "4", "5"}:
                print("Invalid score. Skipping.")
                continue
            quality = int(raw)
        else:
            quality = args.quality

        updated = actions.mark_read(item.id, quality)
        reviewed += 1
        print(f"Scored {quality}, next review on {iso_date(updated.next_review_date)} "
              f"({updated.interval} days).")

    print(f"\nReviewed {reviewed} item(s).")


def postpone(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    item = actions.postpone(args.id)
    print(f"Postponed {item.id} to {iso_date(item.next_review_date)}.")


def schedule(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    item = actions.schedule_for_date(args.id, parse_date(args.date))
    print(f"Scheduled {item.id} for {iso_date(item.next_review_date)}.")


def set_priority(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    item = actions.set_priority(args.id, args.priority)
    print(f"Priority of {item.id} set to {item.priority}.")


def delete(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    actions.delete(args.id)
    print(f"Deleted {args.id}.")


def settings_command(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    settings = store.require_settings()
    changes = {}
    if args.initial_days is not None:
        changes["initial_review_days"] = args.initial_days
    if args.max_reviews is not None:
        changes["max_reviews_per_session"] = args.max_reviews
    if changes:
        settings = replace(settings, **changes)
        store.put_settings(settings)
        print("Settings saved.")
    print(f"initial review days: {settings.initial_review_days}")
    print(f"max reviews per session: {settings.max_reviews_per_session}")


def export_data(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    path = Path(args.file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_json(store, actions.clock), encoding="utf-8")
    print(f"Exported to {path}.")


def import_data(store: ItemStore, actions: ReviewActions, args: argparse.Namespace) -> None:
    path = Path(args.file)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    result = import_snapshot(store, path.read_text(encoding="utf-8"), actions.clock)
    print(f"Imported {result.items_imported} item(s), skipped {result.items_skipped}.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resurface: read it later, review it on a schedule.")
    parser.add_argument("--db", default=None, help="SQLite database path (overrides config.json).")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_add = sub.add_parser("add", help="Capture one item.")
    source = p_add.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", help="Note text or a URL.")
    source.add_argument("--file", help="Image, PDF or text file.")
    p_add.add_argument("--priority", type=int, choices=[1, 2, 3, 4, 5], default=3,
                       help="1 (highest) to 5 (lowest).")
    p_add.add_argument("--tags", default="", help="Comma-separated tags.")
    p_add.set_defaults(func=add_item)

    p_list = sub.add_parser("list", help="List items.")
    p_list.add_argument("--due", action="store_true", help="Only show due items.")
    p_list.add_argument("--tag", default="", help="Only items with this tag.")
    p_list.add_argument("--type", choices=[t.value for t in ItemType], help="Only items of this type.")
    p_list.add_argument("--sort", choices=list(SORT_KEYS), default="addedDesc", help="Sort order.")
    p_list.add_argument("--limit", type=int, default=20, help="Max items, 0 for all.")
    p_list.set_defaults(func=list_items)

    p_review = sub.add_parser("review", help="Review due items.")
    p_review.add_argument("--limit", type=int, default=0,
                          help="Max items, defaults to the max reviews per session setting.")
    p_review.add_argument(
        "--quality", type=int, choices=[0, 1, 2, 3, 4, 5], help="Apply one score for non-interactive mode."
    )
    p_review.set_defaults(func=review)

    p_postpone = sub.add_parser("postpone", help="Postpone an item by one day.")
    p_postpone.add_argument("id")
    p_postpone.set_defaults(func=postpone)

    p_schedule = sub.add_parser("schedule", help="Schedule an item for a date.")
    p_schedule.add_argument("id")
    p_schedule.add_argument("date", help="YYYY-MM-DD")
    p_schedule.set_defaults(func=schedule)

    p_priority = sub.add_parser("priority", help="Change an item's priority.")
    p_priority.add_argument("id")
    p_priority.add_argument("priority", type=int, choices=[1, 2, 3, 4, 5])
    p_priority.set_defaults(func=set_priority)

    p_delete = sub.add_parser("delete", help="Delete an item.")
    p_delete.add_argument("id")
    p_delete.set_defaults(func=delete)

    p_settings = sub.add_parser("settings", help="Show or change settings.")
    p_settings.add_argument("--initial-days", type=int, help="Days until the first review.")
    p_settings.add_argument("--max-reviews", type=int, help="Items per review session.")
    p_settings.set_defaults(func=settings_command)

    p_export = sub.add_parser("export", help="Export settings and items to JSON.")
    p_export.add_argument("--file", required=True, help="Output file path.")
    p_export.set_defaults(func=export_data)

    p_import = sub.add_parser("import", help="Import a JSON export.")
    p_import.add_argument("--file", required=True, help="Input file path.")
    p_import.set_defaults(func=import_data)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config()
    configure_logging("DEBUG" if args.verbose else config.log_level)
    db_path = Path(args.db) if args.db else config.db_path

    try:
        store = ItemStore(connect(db_path, timeout=config.busy_timeout))
    except ReviewError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    actions = ReviewActions(store, SystemClock())
    try:
        store.initialize_defaults_if_absent()
        args.func(store, actions, args)
    except (ReviewError, ValueError, FileNotFoundError) as exc:
        logger.debug("Command {} failed: {!r}", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
