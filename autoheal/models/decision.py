"""
Decision Model - Remediation Policy and Outcome

Policy is read-only configuration resolved by alert type.
Decision is the pure, per-message output of the DecisionEngine.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class DecisionOutcome(str, Enum):
    """Possible remediation decisions."""
    AUTO_REPLACE = "AUTO_REPLACE"
    NEEDS_APPROVAL = "NEEDS_APPROVAL"
    NO_ACTION = "NO_ACTION"


class Policy(BaseModel):
    """Remediation behavior for one alert type."""

    alert_type: str = Field(..., min_length=1, description="Alert type this policy covers")
    action: Optional[str] = Field(None, description="Remote action identifier (None = no remediation)")
    auto_eligible: bool = Field(False, description="Whether the action may run without approval")
    confidence_threshold: float = Field(
        0.9, ge=0.0, le=1.0, description="Minimum confidence for AUTO_REPLACE (inclusive)"
    )
    required_fields: list[str] = Field(
        default_factory=list, description="Fields that must be known for AUTO_REPLACE"
    )
    description: str = Field("", description="Human-readable summary of the policy")

    class Config:
        frozen = True


class Decision(BaseModel):
    """
    Structured output from the DecisionEngine.

    Not persisted; recomputed for every message.
    """

    decision: DecisionOutcome = Field(..., description="Remediation decision")
    reason: str = Field(..., description="Human-readable explanation")
    action: Optional[str] = Field(None, description="Action identifier, if any")

    class Config:
        frozen = True

    @property
    def needs_approval(self) -> bool:
        return self.decision == DecisionOutcome.NEEDS_APPROVAL and self.action is not None

    @property
    def is_automatic(self) -> bool:
        return self.decision == DecisionOutcome.AUTO_REPLACE and self.action is not None
