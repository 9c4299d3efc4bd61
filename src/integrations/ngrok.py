"""Tunnel discovery through the local ngrok agent API."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TunnelInfo:
    public_url: str
    local_port: int


async def get_tunnel_info(api_url: str | None = None, *, client: httpx.AsyncClient | None = None) -> TunnelInfo:
    """Return the public URL and local port of the first running tunnel."""

    api_url = api_url or get_settings().ngrok_api_url
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=5) as owned:
                response = await owned.get(api_url)
        else:
            response = await client.get(api_url)
        response.raise_for_status()
        tunnel = response.json()["tunnels"][0]
        public_url = tunnel["public_url"]
        local_port = int(tunnel["config"]["addr"].rsplit(":", 1)[-1])
    except (httpx.HTTPError, KeyError, IndexError, ValueError) as exc:
        LOGGER.error("ngrok tunnel lookup failed: %s", exc)
        raise RuntimeError("Ngrok Agent is not running") from exc

    return TunnelInfo(public_url=public_url.rstrip("/"), local_port=local_port)
