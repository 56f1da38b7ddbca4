"""Structured logging for pipeline stages."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class PipelineLogger:
    """Interface for structured stage logging (no-op)."""

    def log_stage(
        self,
        generation: int,
        stage: str,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log one settled stage."""
        pass


class StructuredPipelineLogger(PipelineLogger):
    """Structured logger for pipeline stages."""

    def log_stage(
        self,
        generation: int,
        stage: str,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log stage outcome with structured data."""
        log_data: dict[str, Any] = {
            "generation": generation,
            "stage": stage,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Pipeline stage: {stage} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
