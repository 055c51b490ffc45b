"""
Data Models for the Raga Catalog

Raw song documents as produced by a catalog source, the immutable Track
record built from them, and the browse nodes handed to a presentation layer.
"""

from enum import Enum
from typing import Optional, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Catalog constants
# ---------------------------------------------------------------------------

# Eight 3-hour windows of the day, in minutes-since-midnight order.
TIME_BUCKETS: Tuple[str, ...] = (
    "24-03", "03-06", "06-09", "09-12", "12-15", "15-18", "18-21", "21-24",
)

DEFAULT_GENRE = "Hindustani Classical"

FACET_ALL = "*"
FACET_INSTRUMENTAL = "Instrumental*"
FACET_VOCAL = "Vocal*"
FACET_FUSION = "Fusion*"
FACET_FILMI = "Filmi*"
FACET_JUGALBANDI = "Jugalbandi*"


class SearchField(str, Enum):
    """Track fields that support substring search."""

    TITLE = "title"
    ALBUM = "album"
    ARTIST = "artist"
    GENRE = "genre"


# ---------------------------------------------------------------------------
# Raw source document
# ---------------------------------------------------------------------------

class Song(BaseModel):
    """One raw song entry exactly as the source document describes it."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Unique song identifier")
    title: str = Field("", description="Song title")
    album: str = Field("", description="Album name")
    raaga: Optional[str] = Field(None, description="Raaga label, used as the genre")
    taal: Optional[str] = Field(None, description="Taal (rhythmic cycle)")
    time: Optional[str] = Field(None, description="Time-of-day bucket code, e.g. '18-21'")
    url: str = Field("", description="Sharing link of the remote audio file")
    instrument: Optional[str] = Field(None, description="Lead instrument, if any")
    duration: int = Field(0, ge=0, description="Duration in milliseconds")
    artists: Optional[List[str]] = Field(None, description="Performing artists")
    is_fusion: bool = Field(False, alias="isFusion")
    is_instrumental: bool = Field(False, alias="isInstrumental")
    is_filmi: bool = Field(False, alias="isFilmi")
    is_jugalbandi: bool = Field(False, alias="isJugalbandi")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("title", "album", "url", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("time", "raaga", "taal", "instrument", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class Vocabulary(BaseModel):
    """Known names declared by the source document, in display order."""

    artists: List[str] = Field(default_factory=list)
    instrumentalists: List[str] = Field(default_factory=list)
    raagas: List[str] = Field(default_factory=list)
    instruments: List[str] = Field(default_factory=list)
    taals: List[str] = Field(default_factory=list)

    @field_validator("artists", "instrumentalists", "raagas", "instruments", "taals", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return [] if v is None else v


class SongData(Vocabulary):
    """A complete source document: the song list plus its vocabularies."""

    songs: List[Song] = Field(default_factory=list)

    @field_validator("songs", mode="before")
    @classmethod
    def _none_to_songs(cls, v):
        return [] if v is None else v

    def vocabulary(self) -> Vocabulary:
        return Vocabulary(**self.model_dump(exclude={"songs"}))


# ---------------------------------------------------------------------------
# Track models
# ---------------------------------------------------------------------------

class TrackArt(BaseModel):
    """Display art attached to a track after it was loaded."""

    model_config = ConfigDict(frozen=True)

    full_image: bytes = Field(..., description="High resolution image, e.g. for a lock screen")
    thumbnail: bytes = Field(..., description="Small icon for list rows")


class Track(BaseModel):
    """Catalog track. Immutable; art updates produce a copy."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique track identifier")
    title: str = Field("", description="Track title")
    album: str = Field("", description="Album name")
    genre: str = Field(DEFAULT_GENRE, description="Raaga label")
    duration_ms: int = Field(0, ge=0, description="Track length in milliseconds")
    artists: Tuple[str, ...] = Field(default_factory=tuple, description="Ordered artist names")
    artist: str = Field("", description="Artists joined for display")
    instrument: Optional[str] = None
    taal: Optional[str] = None
    time: Optional[str] = Field(None, description="Time-of-day bucket code")
    is_fusion: bool = False
    is_instrumental: bool = False
    is_filmi: bool = False
    is_jugalbandi: bool = False
    source: str = Field("", description="Resolved playable URL")
    art: Optional[TrackArt] = None

    @property
    def is_vocal(self) -> bool:
        return not self.is_instrumental and not self.is_fusion

    def duration_formatted(self) -> str:
        seconds_total = self.duration_ms // 1000
        if seconds_total <= 0:
            return "0:00"
        minutes = seconds_total // 60
        seconds = seconds_total % 60
        return f"{minutes}:{seconds:02d}"


# ---------------------------------------------------------------------------
# Browse models
# ---------------------------------------------------------------------------

class BrowseNode(BaseModel):
    """One row of the browse hierarchy: a category or a playable track."""

    media_id: str
    title: str
    subtitle: str = ""
    browsable: bool = False

    @property
    def playable(self) -> bool:
        return not self.browsable
