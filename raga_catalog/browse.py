"""
Browse Hierarchy Builder

Turns the catalog into a two-level browse tree keyed by media ids:

    __ROOT__                       facets of the current time bucket
      <bucket>/<facet>             one category, e.g. "18-21/Vocal*"
        <bucket>/<facet>/<id>      a playable track

Facets of a bucket are emitted in a fixed order, each with a live count:
All, Instrumental, Vocal, Fusion, Jugalbandi, Filmi, then one node per
instrument and per artist from the catalog vocabulary. All, Fusion and
Filmi are always present; every other facet only when its count is > 0.
Fusion and Filmi are counted across the whole catalog, matching
``MusicProvider.list_by_time_and_facet``.
"""

from collections import Counter
from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from . import media_id as mid
from .models import (
    FACET_ALL,
    FACET_FILMI,
    FACET_FUSION,
    FACET_INSTRUMENTAL,
    FACET_JUGALBANDI,
    FACET_VOCAL,
    TIME_BUCKETS,
    BrowseNode,
    Track,
)
from .provider import MusicProvider

MINUTES_PER_BUCKET = 180
MINUTES_PER_DAY = 1440


def time_bucket_for_minutes(minutes: int) -> str:
    """Map minutes since midnight, in ``[0, 1440)``, to its 3-hour bucket."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"minutes since midnight out of range: {minutes}")
    return TIME_BUCKETS[minutes // MINUTES_PER_BUCKET]


def current_time_bucket(now: Optional[datetime] = None) -> str:
    """Bucket for ``now`` (local wall-clock time by default)."""
    now = now or datetime.now()
    return time_bucket_for_minutes(now.hour * 60 + now.minute)


def _songs(count: int) -> str:
    return f"{count} songs"


class BrowseHierarchyBuilder:
    """Builds browse nodes from a ``MusicProvider``."""

    def __init__(
        self,
        provider: MusicProvider,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.provider = provider
        self.clock = clock

    def current_bucket(self) -> str:
        return current_time_bucket(self.clock())

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    def get_children(self, media_id: str) -> List[BrowseNode]:
        """
        Children of a browsable media id.

        The root resolves to the facet list of the current time bucket; a
        ``bucket/facet`` id resolves to its playable tracks. Anything else
        has no children.
        """
        if not mid.is_browsable(media_id):
            logger.debug(f"Not browsable, no children: {media_id!r}")
            return []

        if media_id == mid.ROOT:
            return self.facets_for_bucket(self.current_bucket())

        bucket, facet = mid.split_media_id(media_id)
        leaves = []
        for track in self.provider.list_by_time_and_facet(bucket, facet):
            # Track ids are used verbatim as the last media id segment.
            try:
                leaves.append(self.create_leaf(track, media_id))
            except ValueError as exc:
                logger.warning(f"Skipping track {track.id!r}: {exc}")
        return leaves

    def facets_for_bucket(self, bucket: str) -> List[BrowseNode]:
        """Browsable facet nodes for ``bucket`` with their song counts."""
        tracks = self.provider.list_all()
        vocabulary = self.provider.store.vocabulary
        instruments = set(vocabulary.instruments)
        artists = set(vocabulary.artists)

        total_fusion = 0
        total_filmi = 0
        all_songs = 0
        total_instrumental = 0
        total_vocal = 0
        total_jugalbandi = 0
        instrument_counts: Counter = Counter()
        artist_counts: Counter = Counter()

        for track in tracks:
            if track.is_fusion:
                total_fusion += 1
            if track.is_filmi:
                total_filmi += 1
            if track.time != bucket:
                continue
            all_songs += 1
            if track.is_jugalbandi:
                total_jugalbandi += 1
            if track.is_vocal:
                total_vocal += 1
            else:
                total_instrumental += 1
            if track.instrument in instruments:
                instrument_counts[track.instrument] += 1
            for artist in set(track.artists) & artists:
                artist_counts[artist] += 1

        nodes = [self._category(bucket, FACET_ALL, "All", all_songs)]
        if total_instrumental > 0:
            nodes.append(self._category(bucket, FACET_INSTRUMENTAL, "All Instrumentals", total_instrumental))
        if total_vocal > 0:
            nodes.append(self._category(bucket, FACET_VOCAL, "All Vocal", total_vocal))
        nodes.append(self._category(bucket, FACET_FUSION, "Fusion", total_fusion))
        if total_jugalbandi > 0:
            nodes.append(self._category(bucket, FACET_JUGALBANDI, "Jugalbandi", total_jugalbandi))
        nodes.append(self._category(bucket, FACET_FILMI, "Filmi", total_filmi))

        for instrument in vocabulary.instruments:
            if instrument_counts[instrument] > 0:
                self._append_named(nodes, bucket, instrument, instrument_counts[instrument])
        for artist in vocabulary.artists:
            if artist_counts[artist] > 0:
                self._append_named(nodes, bucket, artist, artist_counts[artist])
        return nodes

    # ------------------------------------------------------------------
    # Node construction
    # ------------------------------------------------------------------

    @staticmethod
    def _category(bucket: str, facet: str, title: str, count: int) -> BrowseNode:
        return BrowseNode(
            media_id=mid.create_media_id(bucket, facet),
            title=title,
            subtitle=_songs(count),
            browsable=True,
        )

    def _append_named(self, nodes: List[BrowseNode], bucket: str, name: str, count: int) -> None:
        # Names are used verbatim as media id segments.
        try:
            nodes.append(self._category(bucket, name, name, count))
        except ValueError as exc:
            logger.warning(f"Skipping facet {name!r}: {exc}")

    @staticmethod
    def create_leaf(track: Track, parent_media_id: str) -> BrowseNode:
        """Playable node whose id remembers the category it was reached from."""
        return BrowseNode(
            media_id=mid.create_media_id(*mid.split_media_id(parent_media_id), track.id),
            title=track.title,
            subtitle=track.genre,
            browsable=False,
        )

    # ------------------------------------------------------------------
    # Leaf resolution
    # ------------------------------------------------------------------

    def resolve_track(self, media_id: str) -> Optional[Track]:
        """Track referenced by a leaf media id, or None."""
        music_id = mid.extract_music_id(media_id)
        if music_id is None:
            return None
        return self.provider.get_track(music_id)

    def playing_queue(self, media_id: str) -> List[Track]:
        """Tracks of the category a leaf was chosen from, in browse order."""
        if not mid.is_leaf(media_id):
            return []
        bucket, facet = mid.split_media_id(media_id)[:2]
        return self.provider.list_by_time_and_facet(bucket, facet)
