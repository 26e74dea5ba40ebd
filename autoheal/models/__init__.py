# Models Package
"""
Pydantic models for typed data contracts.

Parsed alerts, decisions and action tokens are immutable after creation.
"""

from autoheal.models.alert import ParsedAlert, ParseMethod, AlertType, ValidationResult, validate_parsed_alert
from autoheal.models.decision import Decision, DecisionOutcome, Policy
from autoheal.models.action_token import ActionToken, TOKEN_VERSION
from autoheal.models.retrieval import HistoryMessage, RetrievalContext, EmbeddingVector
from autoheal.models.execution import (
    ApprovalState,
    ApprovalKind,
    ApprovalEvent,
    ApprovalOutcome,
    ExecutionPhase,
    InstanceMetadata,
)
from autoheal.models.report import ParseResult, RemediationReport, ProcessResult, ResponseSource

__all__ = [
    "ParsedAlert",
    "ParseMethod",
    "AlertType",
    "ValidationResult",
    "validate_parsed_alert",
    "Decision",
    "DecisionOutcome",
    "Policy",
    "ActionToken",
    "TOKEN_VERSION",
    "HistoryMessage",
    "RetrievalContext",
    "EmbeddingVector",
    "ApprovalState",
    "ApprovalKind",
    "ApprovalEvent",
    "ApprovalOutcome",
    "ExecutionPhase",
    "InstanceMetadata",
    "ParseResult",
    "RemediationReport",
    "ProcessResult",
    "ResponseSource",
]
