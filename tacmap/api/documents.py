"""
JSON / XML / entity document endpoints.

Documents live under the public directory at the request path, so
``PUT /json/missions/alpha.json`` writes ``<public>/json/missions/alpha.json``.
Writes create or overwrite; last write wins.
"""

import asyncio
import json
import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, Response

logger = logging.getLogger(__name__)

router = APIRouter()


def resolve_document(public_dir: Path, kind: str, path: str) -> Path:
    """Map a request path onto the public directory, refusing escapes."""
    kind_root = public_dir.resolve() / kind
    target = (kind_root / path).resolve()
    if not path or target == kind_root:
        raise HTTPException(status_code=400, detail="Document path required")
    if kind_root not in target.parents:
        raise HTTPException(status_code=403, detail="Path outside public directory")
    return target


def _write(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)


async def write_document(target: Path, content: bytes) -> None:
    """Write without blocking the event loop the hub runs on."""
    await asyncio.to_thread(_write, target, content)


def _public_dir(request: Request) -> Path:
    return Path(request.app.state.config.public_dir)


@router.get("/json/{path:path}")
async def read_json(path: str, request: Request):
    target = resolve_document(_public_dir(request), "json", path)
    if not target.is_file():
        raise HTTPException(status_code=404, detail=f"Document not found: /json/{path}")
    return FileResponse(target, media_type="application/json")


@router.post("/json/{path:path}")
@router.put("/json/{path:path}")
async def write_json(path: str, request: Request):
    """Store the request body as compact JSON."""
    target = resolve_document(_public_dir(request), "json", path)
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON body: {e}")

    await write_document(target, json.dumps(body, separators=(",", ":")).encode("utf-8"))
    logger.debug(f"Wrote {target}")
    return Response(status_code=200)


@router.put("/xml/{path:path}")
async def write_xml(path: str, request: Request):
    """Store the raw request body."""
    target = resolve_document(_public_dir(request), "xml", path)
    body = await request.body()
    logger.info(f"Put /xml/{path} ({len(body)} bytes)")
    await write_document(target, body)
    return Response(status_code=200)


@router.post("/entity/{path:path}")
async def write_entity(path: str, request: Request):
    """Store the raw request body."""
    target = resolve_document(_public_dir(request), "entity", path)
    body = await request.body()
    logger.info(f"Post entity /entity/{path} ({len(body)} bytes)")
    await write_document(target, body)
    return Response(status_code=200)
