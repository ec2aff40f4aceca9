from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from doc_gateway.config import Settings
from doc_gateway.conversion import CONTENT_TYPES, ConversionResult, LocalArtifactStore
from doc_gateway.errors import UpstreamError
from doc_gateway.webapi import create_app

PUBLIC_URL = "https://gateway.example.test"


class FakeConverter:
    """Stands in for the Pandoc backend: echoes a fixed stub per output format."""

    def __init__(self, payloads: dict[str, bytes] | None = None) -> None:
        self.payloads = payloads or {"pdf": b"%PD", "docx": b"PK\x03\x04"}
        self.calls: list[tuple[str, str, str]] = []
        self.fail_with: Exception | None = None

    def convert(self, input_format: str, output_format: str, content: str) -> ConversionResult:
        self.calls.append((input_format, output_format, content))
        if self.fail_with is not None:
            raise self.fail_with
        return ConversionResult(self.payloads[output_format], CONTENT_TYPES[output_format])

    def health(self) -> object:
        if self.fail_with is not None:
            raise UpstreamError("pandoc health check failed: HTTP 503", status=503)
        return {"ok": True}


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def converter() -> FakeConverter:
    return FakeConverter()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(tmp_path: Path, clock: FakeClock) -> LocalArtifactStore:
    return LocalArtifactStore(tmp_path / "exports", clock=clock)


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        public_base_url=PUBLIC_URL,
        export_dir=tmp_path / "exports",
        backend_base_url="http://pandoc.invalid",
        reaper_interval_sec=3600,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def client(tmp_path: Path, converter: FakeConverter, store: LocalArtifactStore):
    app = create_app(make_settings(tmp_path), converter=converter, store=store)
    with TestClient(app) as c:
        yield c
