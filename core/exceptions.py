"""Errors surfaced by the review core to its callers."""


class ReviewError(Exception):
    """Base class for all resurface errors."""


class ItemNotFound(ReviewError):
    def __init__(self, item_id: str):
        super().__init__(f"Item with ID {item_id} not found.")
        self.item_id = item_id


class SettingsUnavailable(ReviewError):
    def __init__(self, message: str = "Settings not available for scheduling."):
        super().__init__(message)


class StorageUnavailable(ReviewError):
    """The storage engine is blocked by another connection or has gone away.

    Retrying after the other instance is closed usually helps.
    """

    def __init__(self, message: str, kind: str = "terminated"):
        super().__init__(message)
        self.kind = kind


class InvalidImportFormat(ReviewError, ValueError):
    pass


class InvalidItem(ReviewError, ValueError):
    pass
