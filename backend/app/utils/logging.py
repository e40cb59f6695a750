"""Structured logging for provider calls and pipeline stages."""

import logging
from typing import Any

from backend.app.providers.executor import CallContext

logger = logging.getLogger(__name__)


class StructuredProviderLogger:
    """Structured logger for provider call attempts."""

    def log_attempt(
        self,
        ctx: CallContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        cache_hit: bool = False,
        error_reason: str | None = None,
    ) -> None:
        """Log provider call attempt with structured data."""
        log_data: dict[str, Any] = {
            "trace_id": ctx.trace_id,
            "provider": ctx.provider,
            "operation": ctx.operation,
            "attempt": attempt,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
            "cache_hit": cache_hit,
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Provider call: {ctx.provider}.{ctx.operation} - {outcome}"

        if outcome in ("success", "cache_hit"):
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})


def log_stage(trace_id: str, operation: str, stage: str, latency_ms: float, **fields: Any) -> None:
    """Log completion of one pipeline stage."""
    log_data: dict[str, Any] = {
        "trace_id": trace_id,
        "operation": operation,
        "stage": stage,
        "latency_ms": round(latency_ms, 2),
        **fields,
    }
    logger.info(f"Pipeline stage: {operation}.{stage}", extra={"structured": log_data})
