import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _number(name: str, default: str, cast=int):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Deployment settings, read once at startup."""

    host: str = "0.0.0.0"
    port: int = 8080
    reload: bool = False
    backend_base_url: str = "http://localhost:3030"
    backend_api_key: str = ""
    public_base_url: str = ""
    export_dir: Path = Path("/tmp/exports")
    artifact_ttl_sec: float = 15 * 60
    reaper_interval_sec: float = 5 * 60
    keepalive_sec: float = 25
    upstream_timeout_sec: float = 60
    server_name: str = "mcp-pandoc-tools"
    server_version: str = "1.0.0"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_number("PORT", "8080"),
            reload=_flag(os.getenv("RELOAD", "false")),
            backend_base_url=os.getenv("PANDOC_BASE", "http://localhost:3030").rstrip("/"),
            backend_api_key=os.getenv("PANDOC_API_KEY", ""),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "").rstrip("/"),
            export_dir=Path(os.getenv("EXPORT_DIR", "/tmp/exports")).resolve(),
            artifact_ttl_sec=_number("ARTIFACT_TTL_SEC", "900", float),
            reaper_interval_sec=_number("REAPER_INTERVAL_SEC", "300", float),
            keepalive_sec=_number("SSE_KEEPALIVE_SEC", "25", float),
            upstream_timeout_sec=_number("UPSTREAM_TIMEOUT_SEC", "60", float),
            server_name=os.getenv("MCP_SERVER_NAME", "mcp-pandoc-tools"),
            server_version=os.getenv("MCP_SERVER_VERSION", "1.0.0"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
