"""
Enhanced logging infrastructure for the explorer API.

Structured loguru sinks plus request correlation, so every log line written
while serving a request can be traced back to it.
"""

import os
import sys
import time
import uuid
import traceback
from contextvars import ContextVar
from typing import Dict, Any, Optional
from loguru import logger
import psutil


# Context-local storage for correlation IDs, survives awaits and threadpool hops
_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return f"req_{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]):
    _correlation_id.set(correlation_id)


def get_system_state() -> Dict[str, Any]:
    """Get current process state for error context."""
    try:
        process = psutil.Process()
        return {
            "memory_usage_mb": round(process.memory_info().rss / 1024 / 1024, 2),
            "cpu_percent": process.cpu_percent(),
            "threads": process.num_threads(),
            "timestamp": time.time()
        }
    except psutil.Error:
        return {"error": "unable_to_get_system_state"}


def get_logs_dir() -> str:
    default_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "logs"))
    return os.getenv("LOG_DIR", default_dir)


def setup_enhanced_logger(service_name: str):
    """
    Setup logger with correlation ID support and structured context.

    Args:
        service_name: Name of the service (e.g., 'mainnet-explorer-api')
    """
    def patch_record(record):
        record["extra"]["service"] = service_name
        record["extra"]["correlation_id"] = get_correlation_id() or "no_correlation"
        return True

    logs_dir = get_logs_dir()
    os.makedirs(logs_dir, exist_ok=True)

    logger.remove()

    # JSON file sink for log shipping
    logger.add(
        os.path.join(logs_dir, f"{service_name}.log"),
        rotation="500 MB",
        level="INFO",
        filter=patch_record,
        serialize=True,
    )

    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | <cyan>{extra[service]}</cyan> | <blue>{extra[correlation_id]}</blue> | <white>{message}</white>",
        level="INFO",
        filter=patch_record,
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )


class ErrorContextManager:
    """
    Structured error logging for a service.

    Errors are logged with the correlation ID, process state and any
    business context the caller passes in.
    """

    def __init__(self, service_name: str):
        self.service_name = service_name

    def log_error(self, message: str, error: Exception, **context):
        logger.error(
            message,
            extra={
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_category": classify_error(error),
                "correlation_id": get_correlation_id(),
                "service": self.service_name,
                "system_state": get_system_state(),
                "stack_trace": traceback.format_exc(),
                **context
            }
        )

    def log_service_lifecycle(self, event: str, **context):
        logger.info(
            f"Service lifecycle: {event}",
            extra={
                "lifecycle_event": event,
                "service": self.service_name,
                "timestamp": time.time(),
                **context
            }
        )


def classify_error(error: Exception) -> str:
    """
    Classify errors into categories for metrics and alerting.

    Args:
        error: The exception to classify

    Returns:
        str: Error category
    """
    error_type = type(error).__name__
    error_message = str(error).lower()

    if 'notfound' in error_type.lower():
        return 'not_found'
    elif 'connection' in error_type.lower() or 'timeout' in error_type.lower():
        return 'connection_error'
    elif 'validation' in error_type.lower() or error_type == 'ValueError':
        return 'validation_error'
    elif 'database' in error_type.lower() or 'clickhouse' in error_message or 'sql' in error_message:
        return 'database_error'
    elif 'permission' in error_message or 'auth' in error_message:
        return 'authorization_error'
    else:
        return 'unknown_error'


def log_service_start(service_name: str, **config):
    """Log service startup with configuration."""
    ErrorContextManager(service_name).log_service_lifecycle(
        "service_start",
        configuration=config,
        pid=os.getpid()
    )
