"""
Report Agent - Remediation Summaries and Action Tokens

Turns (parsed alert, decision, policy) into a human-readable summary and,
for approval-gated actions, the encoded ActionToken that the approval
control carries back.
"""

import logging
from typing import Optional

from autoheal.models.action_token import ActionToken
from autoheal.models.alert import ParsedAlert
from autoheal.models.decision import Decision, DecisionOutcome, Policy
from autoheal.models.report import RemediationReport

logger = logging.getLogger(__name__)


_DECISION_LABELS = {
    DecisionOutcome.AUTO_REPLACE: "Automatic remediation",
    DecisionOutcome.NEEDS_APPROVAL: "Needs approval",
    DecisionOutcome.NO_ACTION: "No action",
}


def _fmt_percent(value: Optional[float]) -> str:
    if value is None:
        return "unknown"
    return f"{value:g}%"


class ReportAgent:
    """
    Agent responsible for formatting remediation reports.

    Input: ParsedAlert, Decision, Policy
    Output: RemediationReport
    Side Effects: None
    """

    AGENT_NAME = "ReportAgent"

    def format_report(
        self,
        parsed: ParsedAlert,
        decision: Decision,
        policy: Optional[Policy],
        origin_ref: Optional[str] = None,
    ) -> RemediationReport:
        """Build the report for one decision

        Args:
            parsed: Validated alert
            decision: Decision computed for the alert
            policy: Policy used for the decision (may be None)
            origin_ref: Reference to the originating chat message

        Returns:
            RemediationReport; `token` is set only for NEEDS_APPROVAL with an action
        """
        token = None
        if decision.needs_approval:
            token = ActionToken(
                action=decision.action,
                parsed=parsed,
                decision=decision,
                origin_ref=origin_ref,
            ).encode()

        report = RemediationReport(
            summary=self._build_summary(parsed, decision, policy),
            action=decision.action,
            parsed=parsed,
            decision=decision,
            token=token,
        )
        logger.info(
            f"[{self.AGENT_NAME}] Report for {parsed.alert_type} on {parsed.instance_name or 'unknown instance'}: "
            f"{decision.decision.value}{' (token issued)' if token else ''}"
        )
        return report

    def _build_summary(self, parsed: ParsedAlert, decision: Decision, policy: Optional[Policy]) -> str:
        lines = [f"*Alert:* `{parsed.alert_type}`"]

        target = parsed.instance_name or "unknown instance"
        if parsed.project_id:
            target = f"{target} (project `{parsed.project_id}`)"
        lines.append(f"*Resource:* {target}")

        if parsed.threshold_percent is not None or parsed.value_percent is not None:
            lines.append(
                f"*Condition:* value {_fmt_percent(parsed.value_percent)} "
                f"vs threshold {_fmt_percent(parsed.threshold_percent)}"
            )
        if parsed.policy_name:
            lines.append(f"*Policy:* {parsed.policy_name}")
        if parsed.violation_started_raw:
            lines.append(f"*Violation started:* {parsed.violation_started_raw}")

        lines.append(
            f"*Parsed via:* {parsed.parse_method.value} (confidence {parsed.confidence:.0%})"
        )
        if parsed.missing_fields:
            lines.append(f"*Missing:* {', '.join(parsed.missing_fields)}")

        lines.append("")
        lines.append(f"*Decision:* {_DECISION_LABELS[decision.decision]}")
        if decision.action:
            lines.append(f"*Action:* `{decision.action}`")
        if policy is not None and policy.description:
            lines.append(f"_{policy.description}_")
        lines.append(decision.reason)

        if parsed.source_url:
            lines.append(f"<{parsed.source_url}|View in console>")

        return "\n".join(lines)


_agent = ReportAgent()


def format_report(
    parsed: ParsedAlert,
    decision: Decision,
    policy: Optional[Policy],
    origin_ref: Optional[str] = None,
) -> RemediationReport:
    """Module-level shortcut for ReportAgent().format_report()."""
    return _agent.format_report(parsed, decision, policy, origin_ref=origin_ref)
