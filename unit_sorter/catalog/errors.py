# unit_sorter/catalog/errors.py

"""Error taxonomy for catalog retrieval and normalization."""


class CatalogError(Exception):
    """Base class for every failure scoped to one catalog operation."""


class NetworkError(CatalogError):
    """A request failed or answered with a non-success status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class StructuralError(CatalogError):
    """The response lacks the container or field we navigate to."""


class RecordParseError(CatalogError):
    """A single record is malformed; the batch skips it and continues."""
