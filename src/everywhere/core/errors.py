"""Errors raised by the search service."""


class ItemNotFoundError(LookupError):
    """Raised when invoking an item id absent from the index and last results."""

    def __init__(self, item_id: str) -> None:
        """Initialize item not found error.

        Args:
            item_id: The requested item identifier.
        """
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id


class ActionFailedError(RuntimeError):
    """Raised when an item's action raises."""

    def __init__(self, item_id: str, cause: Exception) -> None:
        """Initialize action failed error.

        Args:
            item_id: Identifier of the invoked item.
            cause: Exception raised by the action.
        """
        super().__init__(f"Action failed for {item_id}: {cause}")
        self.item_id = item_id
        self.cause = cause
