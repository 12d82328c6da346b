"""Unit tests for the per-document quota gate."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from docchat.chat.quota import QuotaGate
from docchat.db.context import RequestContext
from docchat.db.inmemory import InMemoryMessageLog
from docchat.models.chat import ChatMessage
from docchat.models.common import Role, Tier
from docchat.models.outcomes import Allow, Deny
from docchat.models.plans import Plan, QuotaPolicy

OWNER = RequestContext(owner_id="user_alice")
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


async def _seed(log: InMemoryMessageLog, document_id: uuid.UUID, humans: int, ais: int = 0) -> None:
    for i in range(humans):
        await log.append(
            ChatMessage(
                document_id=document_id,
                owner_id=OWNER.owner_id,
                role=Role.human,
                text=f"q{i}",
                created_at=T0 + timedelta(seconds=2 * i),
            )
        )
    for i in range(ais):
        await log.append(
            ChatMessage(
                document_id=document_id,
                owner_id=OWNER.owner_id,
                role=Role.ai,
                text=f"a{i}",
                created_at=T0 + timedelta(seconds=2 * i + 1),
            )
        )


def test_policy_requires_pro_limit_above_free() -> None:
    with pytest.raises(ValidationError):
        QuotaPolicy(max_free_questions=10, max_pro_questions=10)


def test_plan_tier_follows_membership() -> None:
    assert Plan(owner_id="u", has_active_membership=False).tier == Tier.free
    assert Plan(owner_id="u", has_active_membership=True).tier == Tier.pro


@pytest.mark.asyncio
@pytest.mark.parametrize("humans", [0, 1, 2, 3, 4])
async def test_free_tier_denied_exactly_at_limit(humans: int) -> None:
    log = InMemoryMessageLog()
    document_id = uuid.uuid4()
    await _seed(log, document_id, humans, ais=humans)
    gate = QuotaGate(log, QuotaPolicy(max_free_questions=2, max_pro_questions=20))

    decision = await gate.admit(OWNER, document_id, Plan(owner_id=OWNER.owner_id))

    if humans >= 2:
        assert isinstance(decision, Deny)
        assert decision.upgrade_available is True
        assert "Upgrade" in decision.reason
        assert decision.count == humans
    else:
        assert decision == Allow(count=humans, limit=2)


@pytest.mark.asyncio
@pytest.mark.parametrize("humans", [2, 19, 20, 21])
async def test_pro_tier_uses_pro_limit(humans: int) -> None:
    log = InMemoryMessageLog()
    document_id = uuid.uuid4()
    await _seed(log, document_id, humans)
    gate = QuotaGate(log, QuotaPolicy(max_free_questions=2, max_pro_questions=20))
    plan = Plan(owner_id=OWNER.owner_id, has_active_membership=True)

    decision = await gate.admit(OWNER, document_id, plan)

    if humans >= 20:
        assert isinstance(decision, Deny)
        assert decision.upgrade_available is False
        assert "plan limit" in decision.reason
    else:
        assert isinstance(decision, Allow)
        assert decision.limit == 20


@pytest.mark.asyncio
async def test_ai_messages_do_not_count() -> None:
    log = InMemoryMessageLog()
    document_id = uuid.uuid4()
    await _seed(log, document_id, humans=1, ais=5)
    gate = QuotaGate(log, QuotaPolicy(max_free_questions=2, max_pro_questions=20))

    decision = await gate.admit(OWNER, document_id, Plan(owner_id=OWNER.owner_id))

    assert isinstance(decision, Allow)
    assert decision.count == 1


@pytest.mark.asyncio
async def test_quota_is_per_document() -> None:
    log = InMemoryMessageLog()
    full, fresh = uuid.uuid4(), uuid.uuid4()
    await _seed(log, full, humans=2)
    gate = QuotaGate(log, QuotaPolicy(max_free_questions=2, max_pro_questions=20))
    plan = Plan(owner_id=OWNER.owner_id)

    assert isinstance(await gate.admit(OWNER, full, plan), Deny)
    assert isinstance(await gate.admit(OWNER, fresh, plan), Allow)
