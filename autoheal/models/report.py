"""
Report Models - Pipeline Outputs

ParseResult comes from the ParserEngine, RemediationReport from the
ReportAgent and ProcessResult is the envelope returned to chat/HTTP callers.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from autoheal.models.alert import ParsedAlert
from autoheal.models.decision import Decision, Policy


class ParseResult(BaseModel):
    """Outcome of parsing one message."""
    matched: bool
    parsed: Optional[ParsedAlert] = None
    policy: Optional[Policy] = None


class RemediationReport(BaseModel):
    """Human-readable summary plus the data behind it."""
    summary: str
    action: Optional[str] = None
    parsed: ParsedAlert
    decision: Decision
    token: Optional[str] = Field(None, description="Encoded ActionToken when approval is needed")


class ResponseSource(str, Enum):
    """Which path produced the response."""
    POLICY_ENGINE = "policy_engine"
    RAG_HISTORY = "rag_history"
    NONE = "none"


class ProcessResult(BaseModel):
    """Response envelope for one inbound message."""
    source: ResponseSource
    text: str
    data: Optional[dict[str, Any]] = None
