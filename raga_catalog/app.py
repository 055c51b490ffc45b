"""
FastAPI Web Application for the Raga Catalog

Endpoints:
  GET  /api/status                    - Catalog state and current time bucket
  GET  /api/browse?media_id=...       - Children of a browse node (root by default)
  GET  /api/tracks/{track_id}         - One track
  GET  /api/search?q=...&field=title  - Substring search on one field
  GET  /api/shuffle?limit=20          - Random tracks
  PUT  /api/tracks/{track_id}/favorite - Mark / unmark a favorite
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from . import media_id as mid
from .browse import BrowseHierarchyBuilder
from .models import SearchField, Track
from .preferences import Preferences
from .provider import MusicProvider
from .sources import source_from_env
from .track_builder import TrackBuilder


class FavoriteRequest(BaseModel):
    favorite: bool = True


def _track_json(provider: MusicProvider, t: Track) -> dict:
    data = t.model_dump(exclude={"art"})
    data["artists"] = list(t.artists)
    data["duration"] = t.duration_formatted()
    data["has_art"] = t.art is not None
    data["favorite"] = provider.store.is_favorite(t.id)
    return data


def create_app(provider: Optional[MusicProvider] = None) -> FastAPI:
    """Build the API around ``provider`` (one from the environment by default)."""
    if provider is None:
        provider = MusicProvider(
            source=source_from_env(),
            builder=TrackBuilder(toggle=Preferences()),
        )
    browser = BrowseHierarchyBuilder(provider)

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI):
        # Startup: build in the background, requests wait on demand.
        provider.ensure_ready()
        yield
        # Shutdown
        provider.close()

    app = FastAPI(title="Raga Catalog", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.provider = provider
    app.state.browser = browser

    async def require_ready() -> None:
        if not await provider.wait_ready():
            raise HTTPException(status_code=503, detail="Music catalog not available")

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.get("/api/status")
    async def status():
        return {
            "state": provider.state.value,
            "tracks": len(provider.store),
            "current_time_bucket": browser.current_bucket(),
        }

    @app.get("/api/browse")
    async def browse(media_id: str = mid.ROOT):
        await require_ready()
        nodes = browser.get_children(media_id)
        return JSONResponse([n.model_dump() | {"playable": n.playable} for n in nodes])

    @app.get("/api/tracks/{track_id}")
    async def get_track(track_id: str):
        await require_ready()
        track = provider.get_track(track_id)
        if track is None:
            raise HTTPException(status_code=404, detail="Track not found")
        return JSONResponse(_track_json(provider, track))

    @app.get("/api/search")
    async def search(q: str, field: SearchField = SearchField.TITLE, limit: int = 50):
        await require_ready()
        results = provider.search_by_field(field, q)[: min(limit, 500)]
        return JSONResponse([_track_json(provider, t) for t in results])

    @app.get("/api/shuffle")
    async def shuffle(limit: int = 20):
        await require_ready()
        return JSONResponse([_track_json(provider, t) for t in provider.shuffled()[:limit]])

    @app.put("/api/tracks/{track_id}/favorite")
    async def set_favorite(track_id: str, body: FavoriteRequest):
        provider.store.set_favorite(track_id, body.favorite)
        return {"track_id": track_id, "favorite": body.favorite}

    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    port = int(os.environ.get("RAGA_HTTP_PORT", "8888"))
    logger.info(f"Starting Raga Catalog API on port {port}")
    uvicorn.run(
        "raga_catalog.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
