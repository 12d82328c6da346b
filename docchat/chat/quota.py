"""Per-document question quota.

The count of persisted human messages is read fresh on every call. The
check and the later append are not atomic: two concurrent asks on the same
document can both be admitted at ``limit - 1``, overshooting the cap by the
number of simultaneous submissions.
"""

import logging
from uuid import UUID

from docchat.db.context import RequestContext
from docchat.db.repositories import MessageLog
from docchat.models.common import Role, Tier
from docchat.models.outcomes import Allow, Deny
from docchat.models.plans import Plan, QuotaPolicy

logger = logging.getLogger(__name__)

UPGRADE_REASON = (
    "You've reached the limit of {limit} questions per document on the free plan. "
    "Upgrade to continue asking questions."
)
PLAN_LIMIT_REASON = "You've reached the plan limit of {limit} questions for this document."


class QuotaGate:
    """Admission control for new questions."""

    def __init__(self, messages: MessageLog, policy: QuotaPolicy) -> None:
        self._messages = messages
        self._policy = policy

    @property
    def policy(self) -> QuotaPolicy:
        return self._policy

    async def admit(self, ctx: RequestContext, document_id: UUID, plan: Plan) -> Allow | Deny:
        """Decide whether another question may be asked.

        Args:
            ctx: Request context (owner of the document)
            document_id: Document being asked about
            plan: Owner's current plan

        Returns:
            Allow, or Deny with a reason telling free owners to upgrade and
            members that their plan limit is reached

        Raises:
            Exception: Whatever the message log raises while counting
        """
        count = await self._messages.count_by_role(document_id, ctx, Role.human)
        limit = self._policy.limit_for(plan.tier)

        if count < limit:
            return Allow(count=count, limit=limit)

        logger.info(
            f"Quota reached for owner={ctx.owner_id} document={document_id} "
            f"tier={plan.tier.value} count={count} limit={limit}"
        )

        if plan.tier == Tier.free:
            return Deny(
                reason=UPGRADE_REASON.format(limit=limit),
                upgrade_available=True,
                count=count,
                limit=limit,
            )

        return Deny(
            reason=PLAN_LIMIT_REASON.format(limit=limit),
            upgrade_available=False,
            count=count,
            limit=limit,
        )
