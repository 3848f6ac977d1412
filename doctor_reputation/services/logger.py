"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from doctor_reputation.config import settings

LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(parents=True, exist_ok=True)

logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

logger.add(
    LOG_DIR / "doctor_reputation_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",
    retention="7 days",
    compression="zip",
)

for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "openai._base_client",
    "redis",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log a summarizer call."""
    call_data = {
        "timestamp": _now(),
        "model": model,
        "caller": caller,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if error:
        logger.error(f"LLM_CALL_FAILED: {call_data}")
    else:
        logger.info(f"LLM_CALL: {call_data}")


def log_source_call(
    source: str,
    operation: str,
    status: str,
    records: int = 0,
    pages: int = 0,
    stop_reason: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    """Log one source adapter run (all pages of a single operation)."""
    call_data = {
        "timestamp": _now(),
        "source": source,
        "operation": operation,
        "status": status,
        "records": records,
        "pages": pages,
        "stop_reason": stop_reason,
        "error": error,
    }
    if error:
        logger.warning(f"SOURCE_CALL_FAILED: {call_data}")
    else:
        logger.info(f"SOURCE_CALL: {call_data}")


def log_cache_operation(
    operation: str,
    key: str,
    status: str,
    error: Optional[str] = None,
) -> None:
    """Log a cache gateway operation."""
    op_data = {
        "timestamp": _now(),
        "operation": operation,
        "key": key,
        "status": status,
        "error": error,
    }
    if error:
        logger.warning(f"CACHE_OPERATION_FAILED: {op_data}")
    else:
        logger.debug(f"CACHE_OPERATION: {op_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": _now(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
