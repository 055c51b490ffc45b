"""
Error types for the Raga Catalog.

Source failures (``SourceUnavailable``, ``MalformedSource``) are caught by the
provider's build worker and reported as an unsuccessful initialization.
``TrackNotFound`` propagates to the caller.
"""


class CatalogError(Exception):
    """Base class for every catalog error."""


class SourceUnavailable(CatalogError):
    """The raw song document could not be read (I/O or transport failure)."""


class MalformedSource(CatalogError):
    """The raw song document was read but could not be parsed or validated."""


class TrackNotFound(CatalogError, LookupError):
    """No track with the given id exists in the catalog."""

    def __init__(self, track_id: str) -> None:
        super().__init__(f"Track not found: '{track_id}'")
        self.track_id = track_id
