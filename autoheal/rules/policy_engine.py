"""Deterministic policy engine for remediation decisions"""
from typing import Optional
import logging

from autoheal.models.alert import ParsedAlert
from autoheal.models.decision import Decision, DecisionOutcome, Policy


logger = logging.getLogger(__name__)


class DecisionEngine:
    """
    Deterministic rule-based decision engine.

    No side effects - pure function evaluation. The confidence threshold is
    inclusive, so identical inputs never flap around the boundary.
    """

    def decide(self, parsed: ParsedAlert, policy: Optional[Policy]) -> Decision:
        """Evaluate a parsed alert against its policy

        Args:
            parsed: Validated alert
            policy: Policy for the alert type, or None when unmapped

        Returns:
            Decision with outcome, reason and action
        """
        decision = self._evaluate(parsed, policy)
        logger.debug(f"[DecisionEngine] {parsed.alert_type}: {decision.decision.value} ({decision.reason})")
        return decision

    def _evaluate(self, parsed: ParsedAlert, policy: Optional[Policy]) -> Decision:
        if policy is None:
            return Decision(
                decision=DecisionOutcome.NO_ACTION,
                reason=f"No remediation policy is configured for alert type '{parsed.alert_type}'",
                action=None,
            )

        if not policy.action:
            return Decision(
                decision=DecisionOutcome.NO_ACTION,
                reason=f"Policy for '{parsed.alert_type}' defines no remediation action",
                action=None,
            )

        blockers = []
        if not policy.auto_eligible:
            blockers.append("policy requires human approval")

        missing_required = [f for f in policy.required_fields if f in parsed.missing_fields]
        if missing_required:
            blockers.append(f"missing required fields: {', '.join(missing_required)}")

        if parsed.confidence < policy.confidence_threshold:
            blockers.append(
                f"confidence {parsed.confidence:.2f} below threshold {policy.confidence_threshold:.2f}"
            )

        if blockers:
            return Decision(
                decision=DecisionOutcome.NEEDS_APPROVAL,
                reason="Human approval required: " + "; ".join(blockers),
                action=policy.action,
            )

        return Decision(
            decision=DecisionOutcome.AUTO_REPLACE,
            reason=(
                f"All required fields present and confidence {parsed.confidence:.2f} "
                f"meets threshold {policy.confidence_threshold:.2f}"
            ),
            action=policy.action,
        )


_engine = DecisionEngine()


def decide(parsed: ParsedAlert, policy: Optional[Policy]) -> Decision:
    """Module-level shortcut for DecisionEngine().decide()."""
    return _engine.decide(parsed, policy)
