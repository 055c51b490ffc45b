"""
Music Provider: catalog lifecycle and queries.

Owns the initialization state machine that loads the catalog from a source
into a ``CatalogStore``, and the read-only queries used by the browse layer
and the tool surfaces.

States::

    NOT_INITIALIZED --ensure_ready--> INITIALIZING --ok--> INITIALIZED
           ^                               |
           +------------- failure ---------+

At most one build runs at a time on a background worker. Every caller that
asks for readiness while a build is in flight shares that build's future,
so they all see the same result. A failed build leaves the previous catalog
in place and returns to NOT_INITIALIZED, so the next ``ensure_ready`` retries.

Usage:
    provider = MusicProvider(source=JSONFileSource("songs.json"))
    provider.ensure_ready(lambda ok: print("ready" if ok else "failed"))
    ...
    provider.list_by_time_and_facet("18-21", "Vocal*")
"""

import asyncio
import random
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Callable, List, Optional, Union

from loguru import logger

from .errors import CatalogError
from .models import (
    FACET_ALL,
    FACET_FILMI,
    FACET_FUSION,
    FACET_INSTRUMENTAL,
    FACET_JUGALBANDI,
    FACET_VOCAL,
    SearchField,
    Track,
)
from .sources import CatalogSource
from .store import CatalogStore
from .track_builder import TrackBuilder


class State(str, Enum):
    NOT_INITIALIZED = "not_initialized"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"


def matches_facet(track: Track, facet: str) -> bool:
    """
    True if ``track`` belongs to ``facet``, ignoring the time bucket.

    Facets are independent filters; one track may match several.
    """
    if facet == FACET_ALL:
        return True
    if facet == FACET_INSTRUMENTAL:
        return not track.is_vocal
    if facet == FACET_VOCAL:
        return track.is_vocal
    if facet == FACET_FUSION:
        return track.is_fusion
    if facet == FACET_FILMI:
        return track.is_filmi
    if facet == FACET_JUGALBANDI:
        return track.is_jugalbandi
    return facet in track.artists or facet == track.instrument


# Facets matched across the whole catalog rather than within one time bucket.
BUCKET_INDEPENDENT_FACETS = frozenset({FACET_FUSION, FACET_FILMI})


class MusicProvider:
    """Lazily built, shared music catalog."""

    def __init__(
        self,
        source: CatalogSource,
        builder: Optional[TrackBuilder] = None,
        store: Optional[CatalogStore] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.source = source
        self.builder = builder or TrackBuilder()
        self.store = store or CatalogStore()

        self._state = State.NOT_INITIALIZED
        self._state_lock = threading.Lock()   # guards _state transitions and _pending
        self._build_lock = threading.Lock()   # one build at a time
        self._pending: Optional[Future] = None
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="raga-catalog-build"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> State:
        return self._state

    def is_initialized(self) -> bool:
        return self._state is State.INITIALIZED

    def ensure_ready(self, on_complete: Optional[Callable[[bool], None]] = None) -> "Future[bool]":
        """
        Make sure the catalog is built.

        If it already is, ``on_complete(True)`` runs immediately on the
        calling thread. Otherwise a build is scheduled (or the one in flight
        is joined) and ``on_complete`` runs when it finishes. Never blocks.

        Returns:
            A future resolving to True when the catalog is ready.
        """
        with self._state_lock:
            if self._state is State.INITIALIZED:
                future: Future = Future()
                future.set_result(True)
            elif self._pending is not None:
                logger.debug("ensure_ready: joining the build in flight")
                future = self._pending
            else:
                logger.debug("ensure_ready: scheduling catalog build")
                future = self._executor.submit(self._retrieve_media)
                self._pending = future

        if on_complete is not None:
            future.add_done_callback(lambda f: on_complete(f.result()))
        return future

    async def wait_ready(self) -> bool:
        """Awaitable form of ``ensure_ready`` for asyncio callers."""
        return await asyncio.wrap_future(self.ensure_ready())

    def _retrieve_media(self) -> bool:
        with self._build_lock:
            try:
                if self._state is State.NOT_INITIALIZED:
                    self._state = State.INITIALIZING
                    logger.info(f"Building music catalog from {self.source!r}")
                    data = self.source.load()
                    tracks = self.builder.build_all(data.songs)
                    count = self.store.replace(tracks, data.vocabulary())
                    with self._state_lock:
                        self._state = State.INITIALIZED
                    logger.info(
                        f"Music catalog ready: {count} tracks, "
                        f"{len(self.store.genres())} genres"
                    )
            except CatalogError as exc:
                logger.error(f"Music catalog build failed: {exc}")
            except Exception:
                logger.exception("Unexpected error while building the music catalog")
            finally:
                with self._state_lock:
                    if self._state is not State.INITIALIZED:
                        # Back to NOT_INITIALIZED so a later call can retry.
                        self._state = State.NOT_INITIALIZED
                    self._pending = None
            return self._state is State.INITIALIZED

    def close(self) -> None:
        """Stop the build worker (waits for a build in flight)."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "MusicProvider":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_track(self, track_id: str) -> Optional[Track]:
        return self.store.get(track_id)

    def list_all(self) -> List[Track]:
        """Every track. Callers must not rely on the order."""
        if not self.is_initialized():
            return []
        return self.store.tracks()

    def shuffled(self, rng: Optional[random.Random] = None) -> List[Track]:
        tracks = self.list_all()
        (rng or random).shuffle(tracks)
        return tracks

    def genres(self) -> List[str]:
        if not self.is_initialized():
            return []
        return self.store.genres()

    def list_by_genre(self, genre: str) -> List[Track]:
        if not self.is_initialized():
            return []
        return self.store.by_genre(genre)

    def search_by_field(self, field: Union[SearchField, str], query: str) -> List[Track]:
        """
        Case-insensitive substring search on one field.

        No tokenization and no ranking; results follow catalog order.

        Raises:
            ValueError: ``field`` is not one of title, album, artist, genre.
        """
        field = SearchField(field)
        if not self.is_initialized():
            return []
        q = query.lower()
        return [t for t in self.store.tracks() if q in getattr(t, field.value).lower()]

    def search_by_title(self, query: str) -> List[Track]:
        return self.search_by_field(SearchField.TITLE, query)

    def search_by_album(self, query: str) -> List[Track]:
        return self.search_by_field(SearchField.ALBUM, query)

    def search_by_artist(self, query: str) -> List[Track]:
        return self.search_by_field(SearchField.ARTIST, query)

    def search_by_genre(self, query: str) -> List[Track]:
        return self.search_by_field(SearchField.GENRE, query)

    def list_by_time_and_facet(self, bucket: str, facet: str) -> List[Track]:
        """
        Tracks of one browse category.

        Fusion and Filmi match across the whole catalog; every other facet
        (including artist and instrument names) only within ``bucket``.
        """
        if not self.is_initialized():
            return []
        if facet in BUCKET_INDEPENDENT_FACETS:
            candidates = self.store.tracks()
        else:
            candidates = self.store.by_time(bucket)
        return [t for t in candidates if matches_facet(t, facet)]

    def __repr__(self) -> str:
        return f"MusicProvider(state={self._state.value}, store={self.store!r})"
