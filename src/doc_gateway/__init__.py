"""
Document Export Gateway package.

Exposes markdown/HTML to PDF and DOCX conversion as invocable tools backed by
a remote Pandoc service. The FastAPI application lives in `doc_gateway.webapi`.
"""

__all__ = ["__version__"]

__version__ = "1.0.0"
