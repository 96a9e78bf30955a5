"""
Middleware: code that runs around every request without the handlers
knowing about it.

    base.py      Middleware ABC and MiddlewarePipeline
    logging.py   LoggingMiddleware (access log with timing)
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
