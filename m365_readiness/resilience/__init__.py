from .classify import classify_error
from .health import TokenHealthMonitor
from .executor import ResilientExecutor, RetryPolicy

__all__ = [
    "classify_error",
    "TokenHealthMonitor",
    "ResilientExecutor",
    "RetryPolicy",
]
