"""
Unit Tests for ApprovalCoordinator

Tests:
- Rejection makes no remote call
- Discovery / execute failure phases
- Project id resolution
- Disabled executor
"""

import pytest

from autoheal.agents.human_review import ApprovalCoordinator
from autoheal.models.action_token import ActionToken
from autoheal.models.decision import Decision, DecisionOutcome
from autoheal.models.execution import ApprovalEvent, ApprovalKind, ApprovalState, ExecutionPhase
from autoheal.tools.mcp_client import ToolConnectionManager
from autoheal.tools.remediation_tools import DISCOVER_TOOL, RECREATE_TOOL, RemediationToolClient
from autoheal.utils.error_handling import ActionTokenError
from tests.conftest import FakeToolTransport, ok_result


def _coordinator(responses):
    transport = FakeToolTransport(responses)

    async def connector():
        return transport

    tools = RemediationToolClient(ToolConnectionManager(connector), timeout_seconds=1.0)
    return ApprovalCoordinator(tools), transport


def _token(parsed):
    return ActionToken(
        action="recreate_instance",
        parsed=parsed,
        decision=Decision(decision=DecisionOutcome.NEEDS_APPROVAL, reason="r", action="recreate_instance"),
        origin_ref="ts-9",
    ).encode()


DISCOVERED = ok_result({"zone": "us-central1-a", "migName": "web-mig", "projectId": "proj-discovered"})
EXECUTED = ok_result({"success": True, "message": "recreating instance-7"})


@pytest.mark.asyncio
async def test_reject_makes_no_remote_call(make_parsed):
    coordinator, transport = _coordinator({})

    outcome = await coordinator.handle(
        ApprovalEvent(kind=ApprovalKind.REJECT, token=_token(make_parsed()), actor="alice")
    )

    assert outcome.state == ApprovalState.REJECTED
    assert outcome.success is False
    assert outcome.actor == "alice"
    assert outcome.origin_ref == "ts-9"
    assert transport.calls == []


@pytest.mark.asyncio
async def test_approve_runs_discover_then_execute(make_parsed):
    coordinator, transport = _coordinator({DISCOVER_TOOL: DISCOVERED, RECREATE_TOOL: EXECUTED})

    outcome = await coordinator.handle(
        ApprovalEvent(kind=ApprovalKind.APPROVE, token=_token(make_parsed()), actor="bob")
    )

    assert outcome.state == ApprovalState.EXECUTED
    assert outcome.success is True
    assert outcome.result == {"success": True, "message": "recreating instance-7"}
    assert [name for name, _ in transport.calls] == [DISCOVER_TOOL, RECREATE_TOOL]
    assert transport.calls[1][1]["projectId"] == "proj-a"


@pytest.mark.asyncio
async def test_discovered_project_used_when_alert_has_none(make_parsed):
    coordinator, transport = _coordinator({DISCOVER_TOOL: DISCOVERED, RECREATE_TOOL: EXECUTED})

    await coordinator.execute("recreate_instance", make_parsed(project_id=None))

    assert transport.calls[1][1]["projectId"] == "proj-discovered"


@pytest.mark.asyncio
async def test_discovery_failure_skips_execute(make_parsed):
    coordinator, transport = _coordinator({
        DISCOVER_TOOL: ok_result({"error": "Instance instance-7 not found"}),
        RECREATE_TOOL: EXECUTED,
    })

    outcome = await coordinator.execute("recreate_instance", make_parsed())

    assert outcome.state == ApprovalState.EXECUTION_FAILED
    assert outcome.phase == ExecutionPhase.DISCOVERY
    assert "Instance instance-7 not found" in outcome.error
    assert [name for name, _ in transport.calls] == [DISCOVER_TOOL]


@pytest.mark.asyncio
async def test_execute_failure_reports_execute_phase(make_parsed):
    coordinator, _ = _coordinator({
        DISCOVER_TOOL: DISCOVERED,
        RECREATE_TOOL: ok_result({"error": "permission denied"}),
    })

    outcome = await coordinator.execute("recreate_instance", make_parsed())

    assert outcome.state == ApprovalState.EXECUTION_FAILED
    assert outcome.phase == ExecutionPhase.EXECUTE
    assert outcome.error == "permission denied"


@pytest.mark.asyncio
async def test_missing_instance_name_fails_before_any_call(make_parsed):
    coordinator, transport = _coordinator({})

    outcome = await coordinator.execute(
        "recreate_instance", make_parsed(instance_name=None, missing_fields=["instance_name"])
    )

    assert outcome.phase == ExecutionPhase.DISCOVERY
    assert transport.calls == []


@pytest.mark.asyncio
async def test_disabled_executor_fails_at_discovery(make_parsed):
    coordinator = ApprovalCoordinator(None)

    outcome = await coordinator.handle(
        ApprovalEvent(kind=ApprovalKind.APPROVE, token=_token(make_parsed()))
    )

    assert not coordinator.executor_enabled
    assert outcome.state == ApprovalState.EXECUTION_FAILED
    assert outcome.phase == ExecutionPhase.DISCOVERY
    assert "ENABLE_MCP" in outcome.error


@pytest.mark.asyncio
async def test_bad_token_raises():
    coordinator = ApprovalCoordinator(None)

    with pytest.raises(ActionTokenError):
        await coordinator.handle(ApprovalEvent(kind=ApprovalKind.APPROVE, token="{}"))


@pytest.mark.asyncio
async def test_repeated_approval_runs_again(make_parsed):
    coordinator, transport = _coordinator({DISCOVER_TOOL: DISCOVERED, RECREATE_TOOL: EXECUTED})
    event = ApprovalEvent(kind=ApprovalKind.APPROVE, token=_token(make_parsed()))

    await coordinator.handle(event)
    await coordinator.handle(event)

    assert len(transport.calls) == 4
