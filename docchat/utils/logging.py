"""Structured logging for lifecycle and chat events."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class StructuredEventLogger:
    """Structured logger attaching machine-readable fields to each record."""

    def _emit(self, level: int, message: str, log_data: dict[str, Any]) -> None:
        logger.log(level, message, extra={"structured": log_data})

    def log_transition(
        self,
        document_id: str,
        owner_id: str,
        status: str,
        progress: float | None = None,
    ) -> None:
        """Log a document lifecycle transition."""
        log_data: dict[str, Any] = {
            "document_id": document_id,
            "owner_id": owner_id,
            "status": status,
        }
        if progress is not None:
            log_data["progress"] = round(progress, 4)

        level = logging.WARNING if status == "failed" else logging.INFO
        self._emit(level, f"Document {document_id} -> {status}", log_data)

    def log_ask(
        self,
        document_id: str,
        owner_id: str,
        outcome: str,
        latency_ms: float | None = None,
        error_reason: str | None = None,
    ) -> None:
        """Log the outcome of a question."""
        log_data: dict[str, Any] = {
            "document_id": document_id,
            "owner_id": owner_id,
            "outcome": outcome,
        }
        if latency_ms is not None:
            log_data["latency_ms"] = round(latency_ms, 2)
        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Ask on {document_id}: {outcome}"

        if outcome in ("answered", "denied"):
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_deletion_step(
        self,
        document_id: str,
        owner_id: str,
        step: str,
        ok: bool,
        error_reason: str | None = None,
    ) -> None:
        """Log one removal step of a document deletion."""
        log_data: dict[str, Any] = {
            "document_id": document_id,
            "owner_id": owner_id,
            "step": step,
            "ok": ok,
        }
        if error_reason:
            log_data["error_reason"] = error_reason

        level = logging.INFO if ok else logging.ERROR
        self._emit(level, f"Delete {document_id} step {step}: {'ok' if ok else 'failed'}", log_data)
