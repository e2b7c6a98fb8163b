"""
HTTP API for RelayKit.

Serves the landing page, the health probe and the chunk upload endpoint.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import HTMLResponse

from .relay import Clock, epoch_millis
from .storage import ChunkKey, ChunkSink, ChunkTooLargeError, InvalidChunkKeyError

logger = logging.getLogger(__name__)

LANDING_PAGE = """<!doctype html>
<html><head><meta charset="utf-8"><title>RelayKit</title>
<style>body{{font-family:ui-sans-serif,system-ui; padding:24px; background:#0b1020; color:#e6eaf2}}</style>
</head><body>
  <h1>Backend running</h1>
  <p>WebSocket signaling: {signaling_url}</p>
  <p>Health: <a href="/health">/health</a></p>
</body></html>
"""


def create_http_router(
    sink: ChunkSink,
    signaling_url: str,
    clock: Optional[Clock] = None,
) -> APIRouter:
    """
    Build the HTTP API router.

    Args:
        sink: Where uploaded chunks are stored.
        signaling_url: WebSocket URL advertised on the landing page.
        clock: Millisecond clock for response timestamps.
    """
    router = APIRouter()
    now = clock or epoch_millis

    @router.get("/", response_class=HTMLResponse)
    async def landing() -> str:
        return LANDING_PAGE.format(signaling_url=signaling_url)

    @router.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True, "time": now()}

    @router.post("/upload/chunk")
    async def upload_chunk(
        chunk: UploadFile = File(...),
        room_id: Optional[str] = Form(None, alias="roomId"),
        user_id: Optional[str] = Form(None, alias="userId"),
        session_id: Optional[str] = Form(None, alias="sessionId"),
        seq: Optional[str] = Form(None),
    ) -> Dict[str, Any]:
        """Store one binary chunk under its (room, user, session, seq) identity."""
        key = ChunkKey.from_fields(room_id, user_id, session_id, seq)

        # Read one byte past the limit so oversize chunks are detected
        # without buffering the whole body.
        data = await chunk.read(sink.max_chunk_bytes + 1)

        try:
            await sink.save_chunk(key, data)
        except ChunkTooLargeError as e:
            logger.info(f"Rejected oversize chunk for {key}: {e}")
            raise HTTPException(status_code=413, detail=str(e))
        except InvalidChunkKeyError as e:
            raise HTTPException(status_code=400, detail=str(e))
        finally:
            await chunk.close()

        return {"saved": True, "at": now()}

    return router


__all__ = ["create_http_router", "LANDING_PAGE"]
