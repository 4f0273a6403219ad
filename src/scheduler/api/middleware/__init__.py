"""API middleware package."""

from src.scheduler.api.middleware.deadline import DeadlineMiddleware
from src.scheduler.api.middleware.logging import LoggingMiddleware

__all__ = ["DeadlineMiddleware", "LoggingMiddleware"]
