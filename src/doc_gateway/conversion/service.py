import asyncio
import logging
from dataclasses import dataclass

from ..errors import ConfigurationError
from .interfaces import Artifact, ArtifactStorage, ConverterGateway, validate_export_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportResult:
    artifact: Artifact
    link: str


class ExportService:
    """Runs one export: convert upstream, store the bytes, hand back a link.

    Framework-agnostic; the HTTP layer and the tool handlers both call
    :meth:`export`. Blocking work is offloaded to threads.
    """

    def __init__(self, converter: ConverterGateway, store: ArtifactStorage, *, public_base_url: str) -> None:
        self._converter = converter
        self._store = store
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def store(self) -> ArtifactStorage:
        return self._store

    def link_for(self, artifact_id: str) -> str:
        if not self._public_base_url:
            raise ConfigurationError("PUBLIC_BASE_URL is not set on the MCP server")
        return f"{self._public_base_url}/download/{artifact_id}"

    async def export(self, input_format: str, output_format: str, content: str) -> ExportResult:
        validate_export_request(input_format, output_format, content)
        if not self._public_base_url:
            raise ConfigurationError("PUBLIC_BASE_URL is not set on the MCP server")

        result = await asyncio.to_thread(self._converter.convert, input_format, output_format, content)
        artifact = await asyncio.to_thread(self._store.put, result.data, result.content_type)
        logger.info("exported %s -> %s as artifact %s", input_format, output_format, artifact.id)
        return ExportResult(artifact=artifact, link=self.link_for(artifact.id))


class Reaper:
    """Periodically evicts artifacts older than the retention window.

    An artifact lives at least ``ttl`` and at most ``ttl + interval`` seconds.
    """

    def __init__(self, store: ArtifactStorage, *, ttl: float, interval: float) -> None:
        self._store = store
        self._ttl = ttl
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self, now: float | None = None) -> int:
        evicted = 0
        for artifact_id in self._store.expired(self._ttl, now):
            if self._store.delete(artifact_id):
                evicted += 1
        if evicted:
            logger.info("evicted %d expired artifact(s); %d remaining", evicted, len(self._store))
        return evicted

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await asyncio.to_thread(self.sweep)
            except Exception:
                logger.exception("artifact sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="artifact-reaper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
