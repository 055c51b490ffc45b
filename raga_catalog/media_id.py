"""
Media id encoding for the browse hierarchy.

A media id is a ``/``-delimited path:

* ``__ROOT__``                 the root of the hierarchy
* ``<bucket>/<facet>``         a browsable category, e.g. ``18-21/Vocal*``
* ``<bucket>/<facet>/<id>``    a playable track reached through that category

Encoding is lossless for segments that do not contain the delimiter.
"""

from typing import List, Optional

ROOT = "__ROOT__"
DELIMITER = "/"


def create_media_id(*segments: str) -> str:
    """Join path segments into a media id."""
    for segment in segments:
        if not segment:
            raise ValueError("Media id segments must be non-empty")
        if DELIMITER in segment:
            raise ValueError(
                f"Invalid media id segment {segment!r}: contains {DELIMITER!r}"
            )
    return DELIMITER.join(segments)


def split_media_id(media_id: str) -> List[str]:
    """Split a media id back into its path segments."""
    if not media_id:
        return []
    return media_id.split(DELIMITER)


def is_browsable(media_id: str) -> bool:
    """True for the root token and for two-segment ``bucket/facet`` ids."""
    if media_id == ROOT:
        return True
    return len(split_media_id(media_id)) == 2


def is_leaf(media_id: str) -> bool:
    return media_id != ROOT and len(split_media_id(media_id)) >= 3


def extract_music_id(media_id: str) -> Optional[str]:
    """Return the catalog track id carried by a leaf media id, else None."""
    if not is_leaf(media_id):
        return None
    return split_media_id(media_id)[-1]


def parent_media_id(media_id: str) -> Optional[str]:
    """Return the id one level up (a leaf's category, a category's root)."""
    if media_id == ROOT:
        return None
    segments = split_media_id(media_id)
    if len(segments) <= 2:
        return ROOT
    return create_media_id(*segments[:-1])
