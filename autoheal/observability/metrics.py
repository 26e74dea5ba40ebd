"""
Observability Metrics - Prometheus counters for the remediation bot

Counters are module-level and registered on a dedicated registry that the
HTTP layer exposes at /metrics.
"""

import logging

from prometheus_client import CollectorRegistry, Counter, generate_latest, CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)

NAMESPACE = "autoheal"

REGISTRY = CollectorRegistry()

MESSAGES_PROCESSED_TOTAL = Counter(
    f"{NAMESPACE}_messages_processed_total",
    "Inbound messages by response source",
    ["source"],
    registry=REGISTRY,
)

DECISIONS_TOTAL = Counter(
    f"{NAMESPACE}_decisions_total",
    "Remediation decisions by outcome",
    ["decision"],
    registry=REGISTRY,
)

EMBEDDING_ATTEMPTS_TOTAL = Counter(
    f"{NAMESPACE}_embedding_attempts_total",
    "Embedding requests by outcome (ok, too_long, error)",
    ["outcome"],
    registry=REGISTRY,
)

REMEDIATION_OUTCOMES_TOTAL = Counter(
    f"{NAMESPACE}_remediation_outcomes_total",
    "Approval workflow terminal states",
    ["state"],
    registry=REGISTRY,
)


def render_latest() -> tuple[bytes, str]:
    """Return the exposition payload and its content type."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
