"""
Execution Models - Approval Workflow States

States per action token:
PENDING -> APPROVED | REJECTED
APPROVED -> EXECUTED | EXECUTION_FAILED
Nothing is stored between states; each event carries its token.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ApprovalState(str, Enum):
    """Lifecycle of an emitted action token."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXECUTED = "EXECUTED"
    EXECUTION_FAILED = "EXECUTION_FAILED"


class ApprovalKind(str, Enum):
    """Human input on a pending action."""
    APPROVE = "approve"
    REJECT = "reject"


class ExecutionPhase(str, Enum):
    """Remote protocol phase that produced a failure."""
    DISCOVERY = "discovery"
    EXECUTE = "execute"


class ApprovalEvent(BaseModel):
    """Approve or reject event carrying the full action token."""
    kind: ApprovalKind
    token: str = Field(..., description="Encoded ActionToken from the approval control")
    actor: Optional[str] = Field(None, description="Who clicked the control")


class InstanceMetadata(BaseModel):
    """Discovery result needed to address the remediation call."""
    zone: str
    mig_name: str
    project_id: Optional[str] = None


class ApprovalOutcome(BaseModel):
    """Terminal state reached for one approval event."""
    state: ApprovalState
    action: Optional[str] = None
    success: bool = False
    phase: Optional[ExecutionPhase] = Field(None, description="Failing phase, when state is EXECUTION_FAILED")
    error: Optional[str] = Field(None, description="Raw error text for operator diagnosis")
    result: Optional[dict[str, Any]] = Field(None, description="Remote execution payload")
    actor: Optional[str] = None
    origin_ref: Optional[str] = None
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
