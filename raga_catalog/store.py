"""
Catalog Store: in-memory indexes over catalog tracks.

Indexes:
* ``by_id``    track id -> ``MutableTrack`` holder (unit of art updates)
* ``by_genre`` genre label -> ordered track ids
* ``by_time``  time bucket -> ordered track ids
* favorites    set of track ids, independent of the indexes

The three indexes and the vocabulary are published together as one
immutable snapshot. Readers take the current snapshot reference once and
never observe a half-built index; writers build a fresh snapshot and swap
the reference under ``_lock``. Favorites have their own lock and are not
cleared by a rebuild.

Usage:
    store = CatalogStore()
    store.replace(tracks, vocabulary)
    store.get("42")
    store.by_time("18-21")
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Iterable, NamedTuple, Optional

from loguru import logger

from .errors import TrackNotFound
from .models import Track, TrackArt, Vocabulary


class MutableTrack:
    """Holder for one catalog entry; the track reference is swapped on art updates."""

    __slots__ = ("track_id", "track", "lock")

    def __init__(self, track: Track) -> None:
        self.track_id = track.id
        self.track = track
        self.lock = threading.Lock()

    def __repr__(self) -> str:
        return f"MutableTrack({self.track_id!r})"


class _Indexes(NamedTuple):
    by_id: dict[str, MutableTrack]
    by_genre: dict[str, list[str]]
    by_time: dict[str, list[str]]
    vocabulary: Vocabulary


_EMPTY = _Indexes({}, {}, {}, Vocabulary())


def _derive(by_id: dict[str, MutableTrack]) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
    by_genre: dict[str, list[str]] = defaultdict(list)
    by_time: dict[str, list[str]] = defaultdict(list)
    for track_id, holder in by_id.items():
        track = holder.track
        if track.genre:
            by_genre[track.genre].append(track_id)
        if track.time is not None:
            by_time[track.time].append(track_id)
    return dict(by_genre), dict(by_time)


class CatalogStore:
    """Thread-safe catalog indexes plus the favorites overlay."""

    def __init__(self) -> None:
        self._indexes: _Indexes = _EMPTY
        self._favorites: set[str] = set()
        self._lock = threading.Lock()  # guards snapshot swaps
        self._favorites_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def replace(self, tracks: Iterable[Track], vocabulary: Optional[Vocabulary] = None) -> int:
        """
        Replace the whole catalog with ``tracks``.

        The new ``by_id`` map is staged privately, derived indexes are built
        from it, and the snapshot is published in one assignment. A track id
        seen twice keeps the later record.

        Returns:
            Number of distinct tracks now in the catalog.
        """
        by_id: dict[str, MutableTrack] = {}
        for track in tracks:
            if track.id in by_id:
                logger.warning(f"CatalogStore: duplicate track id {track.id!r}, keeping the later entry")
            by_id[track.id] = MutableTrack(track)

        by_genre, by_time = _derive(by_id)
        with self._lock:
            self._indexes = _Indexes(by_id, by_genre, by_time, vocabulary or Vocabulary())
        logger.debug(
            f"CatalogStore: {len(by_id)} tracks, {len(by_genre)} genres, {len(by_time)} time buckets"
        )
        return len(by_id)

    def rebuild_derived_indexes(self) -> None:
        """Recompute ``by_genre`` and ``by_time`` from the current ``by_id`` map."""
        with self._lock:
            current = self._indexes
            by_genre, by_time = _derive(current.by_id)
            self._indexes = current._replace(by_genre=by_genre, by_time=by_time)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, track_id: str) -> Optional[Track]:
        holder = self._indexes.by_id.get(track_id)
        return holder.track if holder is not None else None

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._indexes.by_id

    def __len__(self) -> int:
        return len(self._indexes.by_id)

    def is_empty(self) -> bool:
        return not self._indexes.by_id

    def all_ids(self) -> list[str]:
        return list(self._indexes.by_id)

    def tracks(self) -> list[Track]:
        """Every track in catalog (source document) order."""
        return [holder.track for holder in self._indexes.by_id.values()]

    def genres(self) -> list[str]:
        return list(self._indexes.by_genre)

    def by_genre(self, genre: str) -> list[Track]:
        idx = self._indexes
        return self._resolve(idx, idx.by_genre.get(genre, ()))

    def by_time(self, bucket: str) -> list[Track]:
        idx = self._indexes
        return self._resolve(idx, idx.by_time.get(bucket, ()))

    @property
    def vocabulary(self) -> Vocabulary:
        return self._indexes.vocabulary

    @staticmethod
    def _resolve(idx: _Indexes, track_ids: Iterable[str]) -> list[Track]:
        return [idx.by_id[track_id].track for track_id in track_ids]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_art(self, track_id: str, full_image: bytes, thumbnail: bytes) -> Track:
        """
        Attach display art to a track.

        Only this track's holder is locked, so art updates for different ids
        proceed in parallel.

        Raises:
            TrackNotFound: ``track_id`` is not in the catalog (or it is not
                built yet). Ids handed to this method must come from a prior
                catalog read, so this indicates a caller bug.
        """
        holder = self._indexes.by_id.get(track_id)
        if holder is None:
            raise TrackNotFound(track_id)
        art = TrackArt(full_image=full_image, thumbnail=thumbnail)
        with holder.lock:
            holder.track = holder.track.model_copy(update={"art": art})
            return holder.track

    def set_favorite(self, track_id: str, favorite: bool) -> None:
        with self._favorites_lock:
            if favorite:
                self._favorites.add(track_id)
            else:
                self._favorites.discard(track_id)

    def is_favorite(self, track_id: str) -> bool:
        return track_id in self._favorites

    def favorites(self) -> frozenset[str]:
        with self._favorites_lock:
            return frozenset(self._favorites)

    def __repr__(self) -> str:
        idx = self._indexes
        status = f"{len(idx.by_id)} tracks" if idx.by_id else "empty"
        return f"CatalogStore({status}, {len(self._favorites)} favorites)"
