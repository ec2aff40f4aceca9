import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, BinaryIO, Iterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask

from . import __version__
from .announce import AnnouncementChannel
from .config import Settings
from .conversion import ArtifactStorage, ConverterGateway, ExportService, LocalArtifactStore, PandocHttpConverter, Reaper
from .errors import GatewayError, describe_errors
from .tools import Dispatcher, build_registry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CHUNK = 1024 * 1024


class InvokeRequest(BaseModel):
    name: str
    arguments: Any = None


class ExportRequest(BaseModel):
    input_format: Any = None
    output_format: Any = None
    content: Any = None


def _iter_file(handle: BinaryIO) -> Iterator[bytes]:
    with handle:
        while chunk := handle.read(CHUNK):
            yield chunk


def artifact_response(store: ArtifactStorage, artifact_id: str) -> StreamingResponse:
    """Stream a stored artifact as an attachment.

    The handle is closed by the iterator once drained, and again by the
    background task in case the body is never iterated.
    """
    artifact, handle = store.open(artifact_id)
    headers = {"Content-Disposition": f'attachment; filename="{artifact.filename}"'}
    return StreamingResponse(
        _iter_file(handle),
        media_type=artifact.content_type,
        headers=headers,
        background=BackgroundTask(handle.close),
    )


def create_app(
    settings: Settings | None = None,
    *,
    converter: ConverterGateway | None = None,
    store: LocalArtifactStore | None = None,
) -> FastAPI:
    """Build the gateway application.

    ``converter`` and ``store`` default to the Pandoc HTTP client and a store
    under ``settings.export_dir``; tests pass their own.
    """
    if settings is None:
        settings = Settings.from_env()
    if converter is None:
        converter = PandocHttpConverter(
            settings.backend_base_url,
            api_key=settings.backend_api_key,
            timeout=settings.upstream_timeout_sec,
        )
    if store is None:
        store = LocalArtifactStore(settings.export_dir)
    service = ExportService(converter, store, public_base_url=settings.public_base_url)
    reaper = Reaper(store, ttl=settings.artifact_ttl_sec, interval=settings.reaper_interval_sec)
    registry = build_registry(service)
    dispatcher = Dispatcher(registry)
    channel = AnnouncementChannel(
        settings.server_name,
        settings.server_version,
        registry.descriptors(),
        keepalive_sec=settings.keepalive_sec,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.root.mkdir(parents=True, exist_ok=True)
        logger.info(
            "%s %s: backend=%s export_dir=%s ttl=%ss sweep=%ss",
            settings.server_name,
            settings.server_version,
            settings.backend_base_url,
            store.root,
            settings.artifact_ttl_sec,
            settings.reaper_interval_sec,
        )
        if not settings.public_base_url:
            logger.warning("PUBLIC_BASE_URL is not set; tool invocations will fail until it is configured")
        reaper.start()
        try:
            yield
        finally:
            await reaper.stop()
            dropped = await asyncio.to_thread(store.clear)
            logger.info("shutdown: dropped %d pending artifact(s)", dropped)

    app = FastAPI(
        title="Document Export Gateway",
        version=__version__,
        description=(
            "Tool-invocation gateway exposing markdown/HTML to PDF and DOCX "
            "conversion, serving results as short-lived download links."
        ),
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.service = service
    app.state.reaper = reaper
    app.state.dispatcher = dispatcher
    app.state.channel = channel

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": f"invalid request body: {describe_errors(exc.errors())}"})

    @app.get("/healthz")
    def healthz() -> dict[str, object]:
        """Liveness check; does not contact the backend."""
        return {"ok": True, "server": settings.server_name}

    @app.get("/healthz/backend")
    async def backend_health() -> JSONResponse:
        try:
            payload = await asyncio.to_thread(converter.health)
        except GatewayError as e:
            return JSONResponse(status_code=e.status_code, content={"ok": False, "error": e.message})
        return JSONResponse(content={"ok": True, "backend": payload})

    @app.get("/sse")
    async def sse() -> StreamingResponse:
        headers = {
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
        return StreamingResponse(channel.subscribe(), media_type="text/event-stream", headers=headers)

    @app.get("/tools")
    def list_tools() -> dict[str, object]:
        return {"tools": channel.tool_list()}

    @app.post("/invoke")
    async def invoke(body: InvokeRequest) -> dict[str, object]:
        result = await dispatcher.invoke(body.name, body.arguments)
        return result.as_dict()

    @app.post("/export")
    async def export(body: ExportRequest) -> dict[str, object]:
        """Direct export without the tool-name indirection."""
        result = await service.export(body.input_format, body.output_format, body.content)
        return {"ok": True, "link": result.link}

    @app.get("/download/{artifact_id}")
    def download(artifact_id: str) -> StreamingResponse:
        # Time-based retention only: reading never deletes.
        return artifact_response(store, artifact_id)

    return app


app = create_app()


def run() -> None:
    """Run the gateway with uvicorn.

    Listens on HOST:PORT (default 0.0.0.0:8080). Set RELOAD=true for development.
    """
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    uvicorn.run("doc_gateway.webapi:app", host=settings.host, port=settings.port, reload=settings.reload)


if __name__ == "__main__":
    run()
