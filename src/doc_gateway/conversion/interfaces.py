from dataclasses import dataclass
from typing import BinaryIO, Protocol

from ..errors import ValidationError

INPUT_FORMATS = ("markdown", "html")
OUTPUT_FORMATS = ("pdf", "docx")

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

EXTENSIONS = {mime: ext for ext, mime in CONTENT_TYPES.items()}


@dataclass(frozen=True)
class ConversionResult:
    data: bytes
    content_type: str


@dataclass(frozen=True)
class Artifact:
    id: str
    path: str
    content_type: str
    created_at: float

    @property
    def filename(self) -> str:
        return f"{self.id}.{EXTENSIONS[self.content_type]}"


def validate_export_request(input_format: object, output_format: object, content: object) -> None:
    """Check an export request locally, before anything is sent upstream."""
    if input_format not in INPUT_FORMATS:
        raise ValidationError("input_format must be markdown or html")
    if output_format not in OUTPUT_FORMATS:
        raise ValidationError("output_format must be docx or pdf")
    if not isinstance(content, str):
        raise ValidationError("content must be a string")
    if not content:
        raise ValidationError("content must not be empty")


class ConverterGateway(Protocol):
    def convert(self, input_format: str, output_format: str, content: str) -> ConversionResult:
        """Convert content through the backend synchronously.
        This is a blocking call; callers should offload to threads if needed.
        """

    def health(self) -> object:
        ...


class ArtifactStorage(Protocol):
    def put(self, data: bytes, content_type: str) -> Artifact:
        ...

    def get(self, artifact_id: str) -> Artifact:
        ...

    def open(self, artifact_id: str) -> tuple[Artifact, BinaryIO]:
        ...

    def delete(self, artifact_id: str) -> bool:
        ...

    def expired(self, max_age: float, now: float | None = None) -> list[str]:
        ...

    def __len__(self) -> int:
        ...
