"""
Middleware package for Tessera.
"""

from .logging import LoggingMiddleware

__all__ = [
    "LoggingMiddleware",
]
