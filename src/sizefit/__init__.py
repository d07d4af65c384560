"""Target-size media compression driver."""
from .config import CONFIG
from .services import CompressionRequest, CompressionService, CompressionSession

__all__ = ["CONFIG", "CompressionRequest", "CompressionService", "CompressionSession"]
