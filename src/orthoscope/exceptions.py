"""Fatal error types raised by ingestion and query composition."""


class UnknownTaxonError(ValueError):
    """Raised when a taxon is unknown or a taxonomy filter targets no species."""


class MalformedHierarchyError(ValueError):
    """Raised when an orthology hierarchy is not a tree."""


class CyclicHierarchyError(MalformedHierarchyError):
    """Raised when a group appears again on its own traversal path."""

    def __init__(self, group_id: str, path: list[str]):
        self.group_id = group_id
        self.path = path
        super().__init__(
            f"Cyclic orthology hierarchy: group {group_id!r} repeated on path "
            f"{' > '.join(path)}"
        )
