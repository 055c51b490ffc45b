"""
Catalog Sources

A source produces one ``SongData`` document per ``load()`` call. Transport
failures surface as ``SourceUnavailable`` and parse/validation failures as
``MalformedSource``; the provider turns either into a failed initialization
that can be retried.

Sources:
1. ``JSONFileSource``     a songs.json file on disk
2. ``PackagedJSONSource`` the sample catalog bundled with the package
3. ``RemoteJSONSource``   a songs.json document served over HTTP
4. ``InMemorySource``     an already-built document (tests, embedding)
"""

import os
from pathlib import Path
from typing import Optional, Protocol, Union

import requests
from loguru import logger
from pydantic import ValidationError

from .errors import MalformedSource, SourceUnavailable
from .models import SongData


class CatalogSource(Protocol):
    def load(self) -> SongData: ...


def parse_song_data(raw: Union[str, bytes], origin: str = "<memory>") -> SongData:
    """Validate a raw JSON document into ``SongData``."""
    try:
        data = SongData.model_validate_json(raw)
    except ValidationError as exc:
        raise MalformedSource(f"Invalid song document from {origin}: {exc}") from exc
    logger.debug(f"Parsed {len(data.songs)} songs from {origin}")
    return data


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------

class JSONFileSource:
    """Reads the song document from a JSON file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> SongData:
        try:
            raw = self.path.read_bytes()
        except OSError as exc:
            raise SourceUnavailable(f"Cannot read {self.path}: {exc}") from exc
        return parse_song_data(raw, origin=str(self.path))

    def __repr__(self) -> str:
        return f"JSONFileSource(path={self.path})"


class PackagedJSONSource:
    """Reads the sample ``songs.json`` shipped inside the package."""

    PATH = Path(__file__).resolve().parent / "data" / "songs.json"

    def load(self) -> SongData:
        try:
            raw = self.PATH.read_bytes()
        except OSError as exc:
            raise SourceUnavailable(f"Packaged catalog not available: {exc}") from exc
        return parse_song_data(raw, origin=str(self.PATH))

    def __repr__(self) -> str:
        return "PackagedJSONSource()"


class RemoteJSONSource:
    """Fetches the song document over HTTP."""

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def load(self) -> SongData:
        logger.info(f"Fetching song catalog from {self.url}")
        try:
            resp = self.session.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.RequestException as exc:
            raise SourceUnavailable(f"Cannot fetch {self.url}: {exc}") from exc
        return parse_song_data(resp.content, origin=self.url)

    def __repr__(self) -> str:
        return f"RemoteJSONSource(url={self.url})"


class InMemorySource:
    """Serves a prepared document; useful for tests and embedding."""

    def __init__(self, data: Union[SongData, dict]) -> None:
        if isinstance(data, dict):
            try:
                data = SongData.model_validate(data)
            except ValidationError as exc:
                raise MalformedSource(f"Invalid song document: {exc}") from exc
        self.data = data

    def load(self) -> SongData:
        return self.data


def source_from_env() -> CatalogSource:
    """Pick a source from ``RAGA_SONGS_URL`` / ``RAGA_SONGS_PATH``, else the bundled sample."""
    url = os.environ.get("RAGA_SONGS_URL")
    if url:
        return RemoteJSONSource(url)
    path = os.environ.get("RAGA_SONGS_PATH")
    if path:
        return JSONFileSource(path)
    logger.info("RAGA_SONGS_URL / RAGA_SONGS_PATH not set, using the bundled sample catalog.")
    return PackagedJSONSource()
