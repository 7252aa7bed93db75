"""
Tunecellar Web Layer.

HTTP endpoints for uploading files into the ingestion pipeline and inspecting
the resulting library.
"""

from tunecellar.web.server import WebServer

__all__ = [
    "WebServer",
]
