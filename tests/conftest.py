"""Shared fixtures and fakes for the autoheal test suite."""

import json
from typing import Any, Optional

import pytest

from autoheal.models.alert import ParsedAlert, ParseMethod
from autoheal.models.decision import Policy
from autoheal.rules.policies import PolicyRegistry
from autoheal.tools.mcp_client import ToolCallResult
from autoheal.utils.error_handling import EmbeddingInputTooLongError


DISK_ALERT_TEXT = (
    "Disk utilization for proj-a instance-7 is below the threshold of 90 with a value of 95.\n"
    "Policy: disk-low-policy\n"
    "Condition: VM Instance - Disk utilization\n"
    "Violation started: Oct 19, 2026 at 10:02AM UTC\n"
    "View incident: https://console.cloud.google.com/monitoring/alerting/incidents/123?project=proj-a\n"
)

FULL_DISK_ALERT_TEXT = DISK_ALERT_TEXT + "zone: us-central1-a\ninstance group: web-mig\n"


@pytest.fixture
def disk_alert_text():
    return DISK_ALERT_TEXT


@pytest.fixture
def full_disk_alert_text():
    return FULL_DISK_ALERT_TEXT


@pytest.fixture
def policy_registry():
    """Registry loaded from the bundled policies.yaml."""
    return PolicyRegistry.load()


@pytest.fixture
def disk_policy():
    return Policy(
        alert_type="disk_utilization_low",
        action="recreate_instance",
        auto_eligible=True,
        confidence_threshold=0.9,
        required_fields=["instance_name", "zone", "mig_name"],
        description="Recreate the instance in its MIG",
    )


def build_parsed(**overrides) -> ParsedAlert:
    data = {
        "alert_type": "disk_utilization_low",
        "project_id": "proj-a",
        "instance_name": "instance-7",
        "metric_labels": {"zone": "us-central1-a", "mig_name": "web-mig"},
        "threshold_percent": 90.0,
        "value_percent": 95.0,
        "confidence": 0.9,
        "missing_fields": [],
        "parse_method": ParseMethod.REGEX,
    }
    data.update(overrides)
    return ParsedAlert(**data)


@pytest.fixture
def make_parsed():
    """Factory for ParsedAlert records with sensible defaults."""
    return build_parsed


class FakeEmbeddingBackend:
    """Embedding backend that records inputs and replays scripted behavior."""

    def __init__(self, vector: Optional[list[float]] = None, max_chars: Optional[int] = None, error: Any = None):
        self.vector = vector or [0.1, 0.2, 0.3]
        self.max_chars = max_chars
        self.error = error
        self.inputs: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.inputs.append(text)
        if self.error is not None:
            raise self.error
        if self.max_chars is not None and len(text) > self.max_chars:
            raise EmbeddingInputTooLongError(
                "the input length exceeds the context length", sizes_tried=[len(text)]
            )
        return list(self.vector)


class FakeToolTransport:
    """Tool transport that answers from a {tool_name: ToolCallResult | Exception} script."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls: list[tuple[str, dict]] = []
        self.closed = False

    async def call(self, tool_name: str, args: dict) -> ToolCallResult:
        self.calls.append((tool_name, args))
        response = self.responses[tool_name]
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


def ok_result(payload: dict) -> ToolCallResult:
    return ToolCallResult(is_error=False, payload=payload, text=json.dumps(payload))


def error_result(text: str) -> ToolCallResult:
    return ToolCallResult(is_error=True, payload=None, text=text)
