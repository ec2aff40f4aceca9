import asyncio
import json
import logging
from collections.abc import AsyncIterator, Iterable
from typing import Any

from .tools import ToolDescriptor

logger = logging.getLogger(__name__)


def format_event(event: str, data: object) -> str:
    payload = json.dumps(data, separators=(",", ":"))
    return f"event: {event}\ndata: {payload}\n\n"


def format_comment(text: str) -> str:
    return f": {text}\n\n"


class AnnouncementChannel:
    """Server-sent event stream advertising the registered tools.

    Every subscriber gets one `ready` event carrying the full tool list on
    connect, followed by keep-alive comments until the connection goes away.
    """

    def __init__(
        self,
        server_name: str,
        server_version: str,
        tools: Iterable[ToolDescriptor],
        *,
        keepalive_sec: float = 25,
    ) -> None:
        self._server = {"name": server_name, "version": server_version}
        self._tools = tuple(t.as_dict() for t in tools)
        self._keepalive_sec = keepalive_sec
        # diagnostic count for logs and tests; no stream reads it
        self._active = 0

    @property
    def active_subscribers(self) -> int:
        return self._active

    def tool_list(self) -> list[dict[str, Any]]:
        return [dict(t) for t in self._tools]

    def snapshot(self) -> dict[str, Any]:
        return {
            "ok": True,
            "server": self._server["name"],
            "version": self._server["version"],
            "tools": self.tool_list(),
        }

    async def subscribe(self) -> AsyncIterator[str]:
        self._active += 1
        logger.info("announcement subscriber connected (%d open)", self._active)
        try:
            yield format_event("ready", self.snapshot())
            while True:
                await asyncio.sleep(self._keepalive_sec)
                yield format_comment("keep-alive")
        finally:
            # reached on disconnect (task cancelled) or aclose()
            self._active -= 1
            logger.info("announcement subscriber closed (%d open)", self._active)
