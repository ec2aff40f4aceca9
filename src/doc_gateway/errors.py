"""Error kinds raised by the gateway.

Each kind carries the HTTP status the web layer maps it to. Components raise
their own kind and never swallow another component's error.
"""


class GatewayError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GatewayError):
    """Input is outside the contract; never reaches the backend."""

    status_code = 400


class UnknownToolError(GatewayError):
    status_code = 404

    def __init__(self, name: str) -> None:
        super().__init__("unknown tool")
        self.name = name


class NotFoundError(GatewayError):
    status_code = 404


class DuplicateToolError(GatewayError):
    def __init__(self, name: str) -> None:
        super().__init__(f"tool {name!r} already registered")
        self.name = name


class ConfigurationError(GatewayError):
    pass


class UpstreamError(GatewayError):
    """The conversion backend failed, was unreachable, or timed out."""

    status_code = 502

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def describe_errors(errors) -> str:
    """Flatten pydantic-style error dicts into one readable line."""
    problems = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "invalid")
        problems.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(problems)
