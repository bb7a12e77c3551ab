"""
Forwarding endpoint for map tiles and other cross-origin resources.

Two request shapes are accepted::

    /proxy/http://example.com/file?query=1
    /proxy/?http%3A%2F%2Fexample.com%2Ffile%3Fquery%3D1

Hop-by-hop headers are stripped in both directions and the origin's status
and body bytes are passed back untouched.
"""

import asyncio
import logging
import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

import aiohttp
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from ..config import ProxyConfig

logger = logging.getLogger(__name__)

router = APIRouter()

DONT_PROXY_HEADERS = frozenset(h.lower() for h in (
    "Host",
    "Proxy-Connection",
    "Connection",
    "Keep-Alive",
    "Transfer-Encoding",
    "TE",
    "Trailer",
    "Proxy-Authorization",
    "Proxy-Authenticate",
    "Upgrade",
))

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
# Some clients collapse "//" in paths: /proxy/http:/example.com
_COLLAPSED_SCHEME = re.compile(r"^(https?):/(?!/)", re.IGNORECASE)


def filter_headers(headers: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Drop hop-by-hop and proxy headers, keeping repeated headers."""
    return [(name, value) for name, value in headers if name.lower() not in DONT_PROXY_HEADERS]


def resolve_target(path_target: str, query_string: str) -> Optional[str]:
    """
    Work out the remote URL for a proxy request.

    A target in the path gets ``http://`` when it has no scheme and inherits
    the request's query string. With an empty path the first query key is the
    (already decoded) URL. Returns None when no target was given.
    """
    if path_target:
        remote = _COLLAPSED_SCHEME.sub(r"\1://", path_target)
        if not _SCHEME.match(remote):
            remote = "http://" + remote
        if query_string:
            remote = remote.split("?", 1)[0] + "?" + query_string
        return remote

    if query_string:
        pairs = parse_qsl(query_string, keep_blank_values=True)
        if pairs and pairs[0][0]:
            remote = pairs[0][0]
            if "://" not in remote:
                remote = "http://" + remote
            return remote

    return None


async def fetch(
    session: aiohttp.ClientSession,
    url: str,
    headers: List[Tuple[str, str]],
    config: ProxyConfig,
) -> Response:
    """GET ``url`` (through the upstream proxy unless the host is bypassed)."""
    parts = urlsplit(url)
    proxy = config.proxy_for(parts.hostname, parts.port)

    async with session.get(
        url,
        headers=headers,
        proxy=proxy,
        timeout=aiohttp.ClientTimeout(total=config.timeout),
    ) as upstream:
        body = await upstream.read()
        response_headers = filter_headers(upstream.headers.items())
        status = upstream.status

    response = Response(content=body, status_code=status)
    # The origin's own Content-Length/Content-Type replace the generated ones
    for name in {n.lower() for n, _ in response_headers} & {"content-length", "content-type"}:
        del response.headers[name]
    for name, value in response_headers:
        response.headers.append(name, value)
    return response


@router.get("/proxy/{target:path}")
async def proxy(target: str, request: Request):
    """Forward a GET to the target URL and stream the reply back verbatim."""
    remote = resolve_target(target, request.url.query)
    if not remote:
        raise HTTPException(status_code=400, detail="No url specified.")

    try:
        parts = urlsplit(remote)
        valid = bool(parts.hostname) and (parts.port is None or parts.port > 0)
    except ValueError:
        valid = False
    if not valid:
        raise HTTPException(status_code=400, detail=f"Invalid url: {remote}")

    config: ProxyConfig = request.app.state.config.proxy
    session: aiohttp.ClientSession = request.app.state.http_session

    try:
        return await fetch(session, remote, filter_headers(request.headers.items()), config)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"Proxy fetch failed for {remote}: {e}")
        raise HTTPException(status_code=500, detail=f"Proxy fetch failed: {e}")
