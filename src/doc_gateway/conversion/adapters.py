import base64
import hashlib
import logging
import secrets
import threading
import time
from pathlib import Path
from typing import BinaryIO, Callable

import requests

from ..errors import NotFoundError, UpstreamError, ValidationError
from .interfaces import (
    CONTENT_TYPES,
    EXTENSIONS,
    Artifact,
    ArtifactStorage,
    ConversionResult,
    ConverterGateway,
    validate_export_request,
)

logger = logging.getLogger(__name__)

ID_LENGTH = 12


class PandocHttpConverter(ConverterGateway):
    """Client for a remote Pandoc service exposing ``POST /convert``."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 60,
        session: requests.Session | None = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._api_key = api_key or None
        self._timeout = timeout
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    def convert(self, input_format: str, output_format: str, content: str) -> ConversionResult:
        validate_export_request(input_format, output_format, content)
        url = f"{self._base}/convert"
        payload = {"input_format": input_format, "output_format": output_format, "content": content}
        try:
            resp = self._session.post(url, json=payload, headers=self._headers(), timeout=self._timeout)
        except requests.Timeout:
            logger.warning("backend timed out after %ss: %s", self._timeout, url)
            raise UpstreamError(f"pandoc convert timed out after {self._timeout}s") from None
        except requests.RequestException as e:
            logger.warning("backend unreachable: %s", e)
            raise UpstreamError(f"pandoc convert failed: {e}") from e

        if resp.status_code != 200:
            detail = (resp.text or "").strip()[:200]
            logger.warning("backend returned HTTP %s for %s -> %s", resp.status_code, input_format, output_format)
            message = f"pandoc convert failed: HTTP {resp.status_code}"
            if detail:
                message = f"{message}: {detail}"
            raise UpstreamError(message, status=resp.status_code)

        return ConversionResult(data=resp.content, content_type=CONTENT_TYPES[output_format])

    def health(self) -> object:
        url = f"{self._base}/healthz"
        try:
            resp = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"pandoc health check failed: {e}") from e
        if resp.status_code != 200:
            raise UpstreamError(f"pandoc health check failed: HTTP {resp.status_code}", status=resp.status_code)
        try:
            return resp.json()
        except ValueError:
            return resp.text


def new_artifact_id() -> str:
    seed = secrets.token_bytes(16) + time.time_ns().to_bytes(8, "big")
    digest = hashlib.sha256(seed).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")[:ID_LENGTH]


class LocalArtifactStore(ArtifactStorage):
    """In-memory index of artifacts whose bytes live in a scratch directory.

    The index and the backing files are only mutated while holding ``_lock``,
    so a reader either sees a complete artifact or nothing at all.
    """

    def __init__(self, root: str | Path, *, clock: Callable[[], float] = time.time) -> None:
        self._root = Path(root).resolve()
        self._clock = clock
        self._lock = threading.Lock()
        self._index: dict[str, Artifact] = {}
        self._reserved: set[str] = set()

    @property
    def root(self) -> Path:
        return self._root

    def _reserve_id(self) -> str:
        with self._lock:
            while True:
                artifact_id = new_artifact_id()
                if artifact_id not in self._index and artifact_id not in self._reserved:
                    self._reserved.add(artifact_id)
                    return artifact_id

    def put(self, data: bytes, content_type: str) -> Artifact:
        if content_type not in EXTENSIONS:
            raise ValidationError(f"unsupported content type {content_type!r}")
        self._root.mkdir(parents=True, exist_ok=True)
        artifact_id = self._reserve_id()
        path = self._root / f"{artifact_id}.{EXTENSIONS[content_type]}"
        try:
            path.write_bytes(data)
        except OSError:
            path.unlink(missing_ok=True)
            with self._lock:
                self._reserved.discard(artifact_id)
            raise
        artifact = Artifact(id=artifact_id, path=str(path), content_type=content_type, created_at=self._clock())
        with self._lock:
            self._reserved.discard(artifact_id)
            self._index[artifact_id] = artifact
        logger.debug("stored artifact %s (%d bytes, %s)", artifact_id, len(data), content_type)
        return artifact

    def get(self, artifact_id: str) -> Artifact:
        with self._lock:
            artifact = self._index.get(artifact_id)
        if artifact is None:
            raise NotFoundError("not found")
        return artifact

    def open(self, artifact_id: str) -> tuple[Artifact, BinaryIO]:
        with self._lock:
            artifact = self._index.get(artifact_id)
            if artifact is None:
                raise NotFoundError("not found")
            try:
                handle = Path(artifact.path).open("rb")
            except FileNotFoundError:
                # bytes vanished underneath us; the entry is useless
                del self._index[artifact_id]
                raise NotFoundError("not found") from None
        return artifact, handle

    def delete(self, artifact_id: str) -> bool:
        with self._lock:
            artifact = self._index.pop(artifact_id, None)
            if artifact is None:
                return False
            try:
                Path(artifact.path).unlink(missing_ok=True)
            except OSError as e:
                logger.warning("could not remove %s for artifact %s: %s", artifact.path, artifact_id, e)
        return True

    def expired(self, max_age: float, now: float | None = None) -> list[str]:
        now = self._clock() if now is None else now
        with self._lock:
            return [a.id for a in self._index.values() if now - a.created_at > max_age]

    def clear(self) -> int:
        with self._lock:
            ids = list(self._index)
        return sum(1 for artifact_id in ids if self.delete(artifact_id))

    def __contains__(self, artifact_id: object) -> bool:
        with self._lock:
            return artifact_id in self._index

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)
