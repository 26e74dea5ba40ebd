"""Approval & Execution Coordinator - handles the human approval boundary"""
from typing import Optional
import logging

from autoheal.models.action_token import ActionToken
from autoheal.models.alert import ParsedAlert
from autoheal.models.execution import (
    ApprovalEvent,
    ApprovalKind,
    ApprovalOutcome,
    ApprovalState,
    ExecutionPhase,
)
from autoheal.observability.metrics import REMEDIATION_OUTCOMES_TOTAL
from autoheal.tools.remediation_tools import RemediationToolClient
from autoheal.utils.error_handling import DiscoveryError, RemoteToolError


logger = logging.getLogger(__name__)


class ApprovalCoordinator:
    """
    Agent responsible for the approval workflow.

    Input: ApprovalEvent (approve/reject + action token)
    Output: ApprovalOutcome (REJECTED, EXECUTED or EXECUTION_FAILED)
    Side Effects: discover + execute calls on the remote tool server

    No state is kept between events. Two approvals of the same token each
    run the full protocol.
    """

    def __init__(self, tools: Optional[RemediationToolClient] = None):
        self.agent_name = "ApprovalCoordinator"
        self._tools = tools

    @property
    def executor_enabled(self) -> bool:
        return self._tools is not None

    async def handle(self, event: ApprovalEvent) -> ApprovalOutcome:
        """Apply an approve/reject event to the pending action in its token

        Args:
            event: Approval event carrying the encoded token

        Returns:
            Terminal ApprovalOutcome

        Raises:
            ActionTokenError: If the token cannot be decoded
        """
        token = ActionToken.decode(event.token)
        actor = event.actor or "unknown"

        if event.kind == ApprovalKind.REJECT:
            logger.info(f"[{self.agent_name}] Action {token.action} rejected by {actor}")
            outcome = ApprovalOutcome(
                state=ApprovalState.REJECTED,
                action=token.action,
                success=False,
                actor=event.actor,
                origin_ref=token.origin_ref,
            )
            REMEDIATION_OUTCOMES_TOTAL.labels(state=outcome.state.value).inc()
            return outcome

        logger.info(f"[{self.agent_name}] Action {token.action} approved by {actor}")
        return await self.execute(
            token.action, token.parsed, origin_ref=token.origin_ref, actor=event.actor
        )

    async def execute(
        self,
        action: str,
        parsed: ParsedAlert,
        origin_ref: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> ApprovalOutcome:
        """Run the two-phase discover -> execute protocol for an approved action

        Args:
            action: Remote action identifier
            parsed: Alert snapshot the action applies to
            origin_ref: Originating chat message reference
            actor: Approver, or None for automatic execution

        Returns:
            EXECUTED or EXECUTION_FAILED outcome (never raises for remote failures)
        """
        try:
            metadata = await self._discover(parsed)
        except RemoteToolError as e:
            return self._failed(action, ExecutionPhase.DISCOVERY, e, origin_ref, actor)

        project_id = parsed.project_id or metadata.project_id
        try:
            result = await self._tools.execute_recreate_instance(
                project_id=project_id,
                zone=metadata.zone,
                mig_name=metadata.mig_name,
                instance_name=parsed.instance_name,
            )
        except RemoteToolError as e:
            return self._failed(action, ExecutionPhase.EXECUTE, e, origin_ref, actor)

        outcome = ApprovalOutcome(
            state=ApprovalState.EXECUTED,
            action=action,
            success=True,
            result=result,
            actor=actor,
            origin_ref=origin_ref,
        )
        logger.info(f"[{self.agent_name}] {action} executed for {parsed.instance_name}")
        REMEDIATION_OUTCOMES_TOTAL.labels(state=outcome.state.value).inc()
        return outcome

    async def _discover(self, parsed: ParsedAlert):
        if self._tools is None:
            raise DiscoveryError("Remote tool execution is disabled (set ENABLE_MCP=true)")
        if not parsed.instance_name:
            raise DiscoveryError("Cannot execute: instance_name is unknown")
        return await self._tools.discover_instance_metadata(parsed.instance_name, parsed.project_id)

    def _failed(
        self,
        action: str,
        phase: ExecutionPhase,
        error: Exception,
        origin_ref: Optional[str],
        actor: Optional[str],
    ) -> ApprovalOutcome:
        logger.error(f"[{self.agent_name}] {action} failed during {phase.value}: {error}")
        outcome = ApprovalOutcome(
            state=ApprovalState.EXECUTION_FAILED,
            action=action,
            success=False,
            phase=phase,
            error=str(error),
            actor=actor,
            origin_ref=origin_ref,
        )
        REMEDIATION_OUTCOMES_TOTAL.labels(state=outcome.state.value).inc()
        return outcome
