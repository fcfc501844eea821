"""HTTP API for sitecap."""

from .main import create_app, run_server
from .service import CaptureService

__all__ = [
    "create_app",
    "run_server",
    "CaptureService",
]
