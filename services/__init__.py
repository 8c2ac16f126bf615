# Application services
from .review_actions import ReviewActions
from .snapshot import ImportResult, export_json, export_snapshot, import_snapshot

__all__ = ["ReviewActions", "ImportResult", "export_json", "export_snapshot", "import_snapshot"]
