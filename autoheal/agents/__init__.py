# Agents Package
"""Pipeline agents: parsing, reporting, approval, retrieval and orchestration."""

from autoheal.agents.alert_parser import ParserEngine
from autoheal.agents.report_agent import ReportAgent, format_report
from autoheal.agents.human_review import ApprovalCoordinator
from autoheal.agents.retrieval_agent import RetrievalEngine
from autoheal.agents.orchestrator import MessageOrchestrator

__all__ = [
    "ParserEngine",
    "ReportAgent",
    "format_report",
    "ApprovalCoordinator",
    "RetrievalEngine",
    "MessageOrchestrator",
]
