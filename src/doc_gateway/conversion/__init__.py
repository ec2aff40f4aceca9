"""
Domain layer for document export.
Provides interfaces (gateways), the backend client and artifact store
adapters, and the service that ties a conversion to a stored, linkable
artifact so front-ends (HTTP, tool invocations) share the same core logic.
"""

from .interfaces import (
    CONTENT_TYPES,
    INPUT_FORMATS,
    OUTPUT_FORMATS,
    Artifact,
    ArtifactStorage,
    ConversionResult,
    ConverterGateway,
    validate_export_request,
)
from .adapters import LocalArtifactStore, PandocHttpConverter, new_artifact_id
from .service import ExportResult, ExportService, Reaper
