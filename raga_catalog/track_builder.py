"""
Track Builder

Maps raw ``Song`` entries to catalog ``Track`` records, resolving where each
track streams from.

Remote source: the song's sharing link, switched to direct download
(``?dl=0`` -> ``?dl=1``). Local source: a fixed network-share path keyed by
the song id. Override the local template with ``RAGA_LOCAL_URL_TEMPLATE``.
"""

import os
from typing import Iterable, List, Optional

from .models import DEFAULT_GENRE, Song, Track
from .preferences import SourceToggle, StaticToggle

LOCAL_URL_TEMPLATE = "http://readyshare.routerlogin.net/shares/data/classical/songs/{id}.mp3"
ARTIST_SEPARATOR = ","


def _configured_local_template() -> str:
    return os.environ.get("RAGA_LOCAL_URL_TEMPLATE") or LOCAL_URL_TEMPLATE


class TrackBuilder:
    """Builds tracks according to the current remote/local toggle."""

    def __init__(
        self,
        toggle: Optional[SourceToggle] = None,
        local_url_template: Optional[str] = None,
    ) -> None:
        self.toggle = toggle or StaticToggle(remote=False)
        self.local_url_template = local_url_template or _configured_local_template()

    def resolve_source(self, song: Song, remote: Optional[bool] = None) -> str:
        if remote is None:
            remote = self.toggle.is_music_source_remote()
        if remote:
            return song.url.replace("?dl=0", "?dl=1")
        return self.local_url_template.format(id=song.id)

    def build(self, song: Song, remote: Optional[bool] = None) -> Track:
        artists = tuple(song.artists or ())
        return Track(
            id=song.id,
            title=song.title,
            album=song.album,
            genre=song.raaga or DEFAULT_GENRE,
            duration_ms=song.duration,
            artists=artists,
            artist=ARTIST_SEPARATOR.join(artists),
            instrument=song.instrument,
            taal=song.taal,
            time=song.time,
            is_fusion=song.is_fusion,
            is_instrumental=song.is_instrumental,
            is_filmi=song.is_filmi,
            is_jugalbandi=song.is_jugalbandi,
            source=self.resolve_source(song, remote),
        )

    def build_all(self, songs: Iterable[Song]) -> List[Track]:
        """Build every song, reading the toggle once for the whole batch."""
        remote = self.toggle.is_music_source_remote()
        return [self.build(song, remote) for song in songs]
