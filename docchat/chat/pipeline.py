"""Answer pipeline - question → human message → completion → AI message.

A question is either denied before any write, or its human message is
durably recorded whatever happens to generation afterwards.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from uuid import UUID

from docchat.chat.quota import QuotaGate
from docchat.db.context import RequestContext
from docchat.db.repositories import DocumentRepository, MessageLog, PlanRepository
from docchat.llm.client import CompletionService
from docchat.models.chat import ChatMessage
from docchat.models.common import Role, Store
from docchat.models.outcomes import (
    Asked,
    Deny,
    NotFound,
    QuotaExceeded,
    Unauthenticated,
    UpstreamUnavailable,
)
from docchat.utils.logging import StructuredEventLogger
from docchat.utils.metrics import PrometheusChatMetrics

logger = logging.getLogger(__name__)

ANSWER_FAILED_TEXT = "Whoops... I couldn't generate an answer right now. Please try again."
ANSWER_TIMED_OUT_TEXT = "Whoops... the answer took too long to generate. Please try again."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnswerPipeline:
    """Composes quota gate, message log and completion service."""

    def __init__(
        self,
        documents: DocumentRepository,
        messages: MessageLog,
        plans: PlanRepository,
        completion: CompletionService,
        gate: QuotaGate,
        *,
        completion_timeout_ms: int = 30000,
        clock: Callable[[], datetime] = _utcnow,
        event_logger: StructuredEventLogger | None = None,
        metrics: PrometheusChatMetrics | None = None,
    ) -> None:
        self._documents = documents
        self._messages = messages
        self._plans = plans
        self._completion = completion
        self._gate = gate
        self._timeout = completion_timeout_ms / 1000
        self._clock = clock
        self._events = event_logger or StructuredEventLogger()
        self._metrics = metrics or PrometheusChatMetrics()

    def _upstream(
        self, ctx: RequestContext, document_id: UUID, which: Store, error: Exception
    ) -> UpstreamUnavailable:
        logger.error(f"Ask on {document_id} failed in {which.value}: {error}", exc_info=True)
        self._metrics.inc_upstream_error(which.value)
        self._metrics.inc_question("upstream_error")
        self._events.log_ask(str(document_id), ctx.owner_id, "upstream_error", error_reason=which.value)
        return UpstreamUnavailable(which=which, detail=f"{type(error).__name__}: {error}")

    async def ask(
        self,
        ctx: RequestContext | None,
        document_id: UUID,
        question: str,
    ) -> Asked | QuotaExceeded | Unauthenticated | NotFound | UpstreamUnavailable:
        """Admit, record and answer a question.

        Args:
            ctx: Request context, None when the caller is not authenticated
            document_id: Document being asked about
            question: Question text

        Returns:
            Asked once the human message is recorded (``answer_failure`` set
            if generation failed), otherwise the outcome that stopped the
            question before any write
        """
        if ctx is None:
            return Unauthenticated()

        # 1. Resolve document and plan
        try:
            document = await self._documents.get(document_id, ctx)
        except Exception as e:
            return self._upstream(ctx, document_id, Store.metadata, e)

        if document is None:
            return NotFound(document_id=str(document_id))

        try:
            plan = await self._plans.get_plan(ctx.owner_id)
        except Exception as e:
            return self._upstream(ctx, document_id, Store.plan, e)

        # 2. Quota gate
        try:
            decision = await self._gate.admit(ctx, document_id, plan)
        except Exception as e:
            return self._upstream(ctx, document_id, Store.log, e)

        if isinstance(decision, Deny):
            self._metrics.inc_question("denied")
            self._events.log_ask(str(document_id), ctx.owner_id, "denied", error_reason=decision.reason)
            return QuotaExceeded(reason=decision.reason, upgrade_available=decision.upgrade_available)

        # 3. Record the question
        try:
            history = await self._messages.read_ordered(document_id, ctx)
        except Exception as e:
            logger.warning(f"Reading history for {document_id} failed, answering without it: {e}")
            history = []

        try:
            human_message = await self._messages.append(
                ChatMessage(
                    document_id=document_id,
                    owner_id=ctx.owner_id,
                    role=Role.human,
                    text=question,
                    created_at=self._clock(),
                )
            )
        except Exception as e:
            return self._upstream(ctx, document_id, Store.log, e)

        # 4. Generate
        answer_failure: UpstreamUnavailable | None = None
        started = time.perf_counter()
        try:
            answer = await asyncio.wait_for(
                self._completion.complete(document_id, question, history=history),
                timeout=self._timeout,
            )
            outcome = "answered"
        except asyncio.TimeoutError:
            answer = ANSWER_TIMED_OUT_TEXT
            outcome = "timeout"
            answer_failure = UpstreamUnavailable(
                which=Store.completion, detail="completion timed out", timed_out=True
            )
        except Exception as e:
            logger.error(f"Completion for {document_id} failed: {e}", exc_info=True)
            answer = ANSWER_FAILED_TEXT
            outcome = "answer_failed"
            answer_failure = UpstreamUnavailable(
                which=Store.completion, detail=f"{type(e).__name__}: {e}"
            )

        latency_ms = (time.perf_counter() - started) * 1000
        self._metrics.record_completion_latency(outcome, latency_ms)
        if answer_failure is not None:
            self._metrics.inc_upstream_error(Store.completion.value)

        # 5. Record the answer (or the failure notice)
        try:
            ai_message: ChatMessage | None = await self._messages.append(
                ChatMessage(
                    document_id=document_id,
                    owner_id=ctx.owner_id,
                    role=Role.ai,
                    text=answer,
                    created_at=self._clock(),
                )
            )
        except Exception as e:
            logger.error(f"Appending answer for {document_id} failed: {e}", exc_info=True)
            self._metrics.inc_upstream_error(Store.log.value)
            ai_message = None
            if answer_failure is None:
                answer_failure = UpstreamUnavailable(
                    which=Store.log, detail=f"{type(e).__name__}: {e}"
                )
            outcome = "answer_not_recorded"

        self._metrics.inc_question(outcome)
        self._events.log_ask(
            str(document_id),
            ctx.owner_id,
            outcome,
            latency_ms=latency_ms,
            error_reason=answer_failure.detail if answer_failure else None,
        )

        # 6. Done
        return Asked(
            human_message=human_message, ai_message=ai_message, answer_failure=answer_failure
        )

    async def read_chat(
        self, ctx: RequestContext | None, document_id: UUID
    ) -> list[ChatMessage] | Unauthenticated | NotFound | UpstreamUnavailable:
        """Read a document's chat log in conversation order."""
        if ctx is None:
            return Unauthenticated()

        try:
            document = await self._documents.get(document_id, ctx)
        except Exception as e:
            logger.error(f"Loading document {document_id} failed: {e}", exc_info=True)
            self._metrics.inc_upstream_error(Store.metadata.value)
            return UpstreamUnavailable(which=Store.metadata, detail=f"{type(e).__name__}: {e}")

        if document is None:
            return NotFound(document_id=str(document_id))

        try:
            return await self._messages.read_ordered(document_id, ctx)
        except Exception as e:
            logger.error(f"Reading chat log for {document_id} failed: {e}", exc_info=True)
            self._metrics.inc_upstream_error(Store.log.value)
            return UpstreamUnavailable(which=Store.log, detail=f"{type(e).__name__}: {e}")
