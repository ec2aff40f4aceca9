"""Tool registry and invocation dispatcher.

Tools are registered once at startup and resolved by name for each
invocation. Each tool declares its input contract as a pydantic model;
arguments are validated against it before the handler runs, and its JSON
schema is what gets announced to agents.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

import pydantic
from pydantic import BaseModel, Field

from .conversion import ExportService
from .errors import DuplicateToolError, UnknownToolError, ValidationError, describe_errors

logger = logging.getLogger(__name__)


class NoArguments(BaseModel):
    pass


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_model: type[BaseModel] = NoArguments

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}


@dataclass(frozen=True)
class ToolResult:
    content: list[dict[str, Any]]

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(content=[{"type": "text", "text": text}])

    def as_dict(self) -> dict[str, Any]:
        return {"content": list(self.content)}


ToolHandler = Callable[[Any], Awaitable[ToolResult]]


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, tuple[ToolDescriptor, ToolHandler]] = {}

    def register(self, descriptor: ToolDescriptor, handler: ToolHandler) -> None:
        if descriptor.name in self._tools:
            raise DuplicateToolError(descriptor.name)
        self._tools[descriptor.name] = (descriptor, handler)

    def resolve(self, name: str) -> tuple[ToolDescriptor, ToolHandler]:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def descriptors(self) -> list[ToolDescriptor]:
        return [descriptor for descriptor, _ in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def validate_arguments(model: type[BaseModel], arguments: object) -> BaseModel:
    if arguments is None:
        arguments = {}
    try:
        return model.model_validate(arguments)
    except pydantic.ValidationError as e:
        raise ValidationError(describe_errors(e.errors())) from None


class Dispatcher:
    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def invoke(self, name: str, arguments: object) -> ToolResult:
        descriptor, handler = self._registry.resolve(name)
        args = validate_arguments(descriptor.input_model, arguments)
        logger.debug("invoking tool %s", name)
        return await handler(args)


class ConvertArguments(BaseModel):
    input_format: Literal["markdown", "html"]
    content: str = Field(min_length=1)


def _export_tool(service: ExportService, output_format: str) -> ToolHandler:
    label = output_format.upper()

    async def handler(args: ConvertArguments) -> ToolResult:
        result = await service.export(args.input_format, output_format, args.content)
        return ToolResult.text(f"{label} ready: {result.link}")

    return handler


def build_registry(service: ExportService) -> ToolRegistry:
    registry = ToolRegistry()
    for output_format in ("pdf", "docx"):
        label = output_format.upper()
        registry.register(
            ToolDescriptor(
                name=f"convert_to_{output_format}",
                description=f"Convert markdown or HTML to {label} and return a download link",
                input_model=ConvertArguments,
            ),
            _export_tool(service, output_format),
        )
    return registry
