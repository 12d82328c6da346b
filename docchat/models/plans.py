"""Plan and quota policy models."""

from pydantic import BaseModel, Field, model_validator

from docchat.models.common import Tier


class Plan(BaseModel):
    """Billing plan flag for an owner (read-only here)."""

    owner_id: str
    has_active_membership: bool = False

    @property
    def tier(self) -> Tier:
        return Tier.pro if self.has_active_membership else Tier.free


class QuotaPolicy(BaseModel):
    """Maximum number of questions per document for each tier."""

    max_free_questions: int = Field(..., ge=0)
    max_pro_questions: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_pro_exceeds_free(self) -> "QuotaPolicy":
        """Ensure the paid tier always allows more than the free tier."""
        if self.max_pro_questions <= self.max_free_questions:
            raise ValueError("max_pro_questions must exceed max_free_questions")
        return self

    def limit_for(self, tier: Tier) -> int:
        """Return the question limit for a tier."""
        if tier == Tier.pro:
            return self.max_pro_questions
        return self.max_free_questions
