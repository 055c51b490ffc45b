"""
FastMCP Server for the Raga Catalog

Exposes time-of-day browsing, search and favorites as MCP tools.

To connect to Claude Desktop (stdio), add to claude_desktop_config.json:
{
  "mcpServers": {
    "raga-catalog": {
      "command": "uv",
      "args": ["run", "--project", "/path/to/raga_catalog", "python", "-m", "raga_catalog.mcp_server"],
      "env": {"RAGA_SONGS_PATH": "/path/to/songs.json"}
    }
  }
}

To run over HTTP (SSE):
  python -m raga_catalog.mcp_server --transport sse [--host 127.0.0.1] [--port 8000]
"""

import os
import signal
import sys
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP
from loguru import logger

from . import media_id as mid
from .browse import BrowseHierarchyBuilder
from .models import TIME_BUCKETS, SearchField, Track
from .preferences import Preferences
from .provider import MusicProvider
from .sources import source_from_env
from .track_builder import TrackBuilder

# ---------------------------------------------------------------------------
# Global state
# ---------------------------------------------------------------------------

mcp = FastMCP("Raga Catalog")

preferences: Optional[Preferences] = None
provider: Optional[MusicProvider] = None
browser: Optional[BrowseHierarchyBuilder] = None


def _get_provider() -> MusicProvider:
    """Create the shared provider on first use."""
    global preferences, provider, browser
    if provider is None:
        preferences = Preferences()
        provider = MusicProvider(
            source=source_from_env(),
            builder=TrackBuilder(toggle=preferences),
        )
        browser = BrowseHierarchyBuilder(provider)
    return provider


async def _ensure_initialized() -> bool:
    """Lazy-build the catalog on first tool call. False if the build failed."""
    ready = await _get_provider().wait_ready()
    if not ready:
        logger.warning("Music catalog is not available; the next call will retry.")
    return ready


_NOT_READY = {"error": "Music catalog could not be loaded, check the source and retry"}


def _track_summary(t: Track) -> Dict[str, Any]:
    return {
        "id": t.id,
        "title": t.title,
        "album": t.album,
        "artist": t.artist,
        "genre": t.genre,
        "taal": t.taal,
        "instrument": t.instrument,
        "time": t.time,
        "duration": t.duration_formatted(),
        "is_instrumental": t.is_instrumental,
        "is_fusion": t.is_fusion,
        "is_filmi": t.is_filmi,
        "is_jugalbandi": t.is_jugalbandi,
        "source": t.source,
        "favorite": provider.store.is_favorite(t.id) if provider else False,
    }


# ---------------------------------------------------------------------------
# Browse
# ---------------------------------------------------------------------------

@mcp.tool()
async def browse(media_id: str = mid.ROOT) -> List[Dict[str, Any]]:
    """
    List the children of a node in the browse hierarchy.

    Args:
        media_id: "__ROOT__" for the categories of the current time of day,
                  or a category id such as "18-21/Vocal*" for its tracks.

    Returns:
        Nodes with media_id, title, subtitle and whether they are browsable
        (a category) or playable (a track).
    """
    if not await _ensure_initialized():
        return [_NOT_READY]
    return [node.model_dump() | {"playable": node.playable} for node in browser.get_children(media_id)]


@mcp.tool()
async def browse_time_bucket(bucket: str) -> List[Dict[str, Any]]:
    """
    List the categories of any time-of-day bucket.

    Args:
        bucket: One of 24-03, 03-06, 06-09, 09-12, 12-15, 15-18, 18-21, 21-24.
    """
    if bucket not in TIME_BUCKETS:
        return [{"error": f"Unknown time bucket '{bucket}'. Use one of: {', '.join(TIME_BUCKETS)}"}]
    if not await _ensure_initialized():
        return [_NOT_READY]
    return [node.model_dump() for node in browser.facets_for_bucket(bucket)]


@mcp.tool()
async def get_track(track_id_or_media_id: str) -> Dict[str, Any]:
    """
    Get full details for one track.

    Args:
        track_id_or_media_id: A catalog track id, or a playable media id
                              returned by ``browse``.
    """
    if not await _ensure_initialized():
        return _NOT_READY
    track = browser.resolve_track(track_id_or_media_id) or provider.get_track(track_id_or_media_id)
    if track is None:
        return {"error": f"Track not found: '{track_id_or_media_id}'"}
    return _track_summary(track)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@mcp.tool()
async def search_tracks(query: str, field: str = "title", limit: int = 20) -> List[Dict[str, Any]]:
    """
    Case-insensitive substring search on one track field.

    Args:
        query: Text to look for.
        field: title, album, artist or genre (the raaga).
        limit: Maximum results (default 20).
    """
    if field not in {f.value for f in SearchField}:
        return [{"error": f"Unknown field '{field}'. Use title, album, artist or genre."}]
    if not await _ensure_initialized():
        return [_NOT_READY]
    results = provider.search_by_field(field, query)
    return [_track_summary(t) for t in results[:limit]]


@mcp.tool()
async def shuffle_tracks(limit: int = 20) -> List[Dict[str, Any]]:
    """Return a random selection of tracks from the whole catalog."""
    if not await _ensure_initialized():
        return [_NOT_READY]
    return [_track_summary(t) for t in provider.shuffled()[:limit]]


# ---------------------------------------------------------------------------
# Favorites & preferences
# ---------------------------------------------------------------------------

@mcp.tool()
async def set_favorite(track_id: str, favorite: bool = True) -> Dict[str, Any]:
    """Mark or unmark a track as a favorite."""
    _get_provider().store.set_favorite(track_id, favorite)
    return {"track_id": track_id, "favorite": favorite}


@mcp.tool()
async def list_favorites() -> List[Dict[str, Any]]:
    """List favorite tracks. Ids no longer in the catalog are reported as missing."""
    if not await _ensure_initialized():
        return [_NOT_READY]
    out = []
    for track_id in sorted(provider.store.favorites()):
        track = provider.get_track(track_id)
        out.append(_track_summary(track) if track else {"id": track_id, "missing": True})
    return out


@mcp.tool()
async def toggle_music_source() -> Dict[str, Any]:
    """
    Switch between streaming from the remote share links and the local
    network share. Takes effect the next time the catalog is built.
    """
    _get_provider()
    remote = preferences.toggle_music_source()
    return {"music_source": "remote" if remote else "local"}


@mcp.tool()
async def catalog_status() -> Dict[str, Any]:
    """Catalog state, size, and the time bucket the root currently shows."""
    p = _get_provider()
    return {
        "state": p.state.value,
        "tracks": len(p.store),
        "genres": len(p.genres()),
        "favorites": len(p.store.favorites()),
        "current_time_bucket": browser.current_bucket(),
        "music_source": "remote" if preferences.is_music_source_remote() else "local",
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=os.environ.get("RAGA_LOG_LEVEL", "INFO").upper())


def main():
    """Run the MCP server."""
    import argparse

    def handle_shutdown(sig, frame):
        logger.info("Shutting down MCP server...")
        if provider:
            provider.close()
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    parser = argparse.ArgumentParser()
    parser.add_argument("--transport", default="stdio", choices=["stdio", "sse"])
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    configure_logging()
    logger.info("Starting Raga Catalog MCP Server...")

    # Start loading in the background so the first tool call is fast.
    _get_provider().ensure_ready()

    if args.transport == "sse":
        mcp.run(transport="sse", host=args.host, port=args.port)
    else:
        mcp.run()


if __name__ == "__main__":
    main()
