"""Sequential task execution utilities."""

from .serializer import (
    DEFAULT_TIMEOUT_MS,
    TaskCancelledError,
    TaskSerializer,
    TaskSerializerError,
    TaskTimeoutError,
)

__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "TaskCancelledError",
    "TaskSerializer",
    "TaskSerializerError",
    "TaskTimeoutError",
]
