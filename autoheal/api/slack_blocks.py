"""
Slack Block Kit payload builders.

Pure functions that render pipeline results as Block Kit blocks. Delivery
(chat.postMessage / chat.update) belongs to the chat integration.
"""

import json
import logging
from typing import Optional

from autoheal.models.execution import ApprovalOutcome, ApprovalState
from autoheal.models.report import ProcessResult, ResponseSource

logger = logging.getLogger(__name__)


APPROVE_ACTION_ID = "approve_action"
REJECT_ACTION_ID = "reject_action"
SEARCH_ALL_ACTION_ID = "search_all_channels"

# Block Kit rejects button values longer than this
BUTTON_VALUE_LIMIT = 2000


def _section(text: str) -> dict:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _button(label: str, action_id: str, value: str, style: Optional[str] = None) -> dict:
    if len(value) > BUTTON_VALUE_LIMIT:
        logger.warning(f"[SlackBlocks] Button value for {action_id} is {len(value)} chars (limit {BUTTON_VALUE_LIMIT})")
    button = {
        "type": "button",
        "text": {"type": "plain_text", "text": label},
        "value": value,
        "action_id": action_id,
    }
    if style:
        button["style"] = style
    return button


def approval_blocks(summary: str, action: str, token: str) -> list[dict]:
    """Summary, action line and approve/reject buttons carrying the action token."""
    return [
        _section(summary),
        _section(f"*Action:* `{action}`"),
        {
            "type": "actions",
            "elements": [
                _button("✅ Approve & Execute", APPROVE_ACTION_ID, token, style="primary"),
                _button("❌ Reject", REJECT_ACTION_ID, token, style="danger"),
            ],
        },
    ]


def search_all_value(original_text: str, searched_channel: str, origin_ref: Optional[str] = None) -> str:
    return json.dumps(
        {
            "original_text": original_text,
            "original_message_ts": origin_ref,
            "searched_channel": searched_channel,
        }
    )


def parse_search_all_value(raw: str) -> dict:
    """Decode a search-all button value; raises ValueError when malformed."""
    data = json.loads(raw)
    if not isinstance(data, dict) or not data.get("original_text"):
        raise ValueError("search_all_channels value must carry original_text")
    return data


def search_all_blocks(original_text: str, searched_channel: str, origin_ref: Optional[str] = None) -> list[dict]:
    return [
        {
            "type": "actions",
            "elements": [
                _button(
                    "🔍 Search All Channels",
                    SEARCH_ALL_ACTION_ID,
                    search_all_value(original_text, searched_channel, origin_ref),
                    style="primary",
                )
            ],
        }
    ]


def offers_search_all(result: ProcessResult) -> bool:
    """True when history was searched within one channel and no alert matched."""
    if result.source == ResponseSource.POLICY_ENGINE or not result.data:
        return False
    return bool(result.data.get("channel_scope"))


def response_blocks(result: ProcessResult, original_text: str, origin_ref: Optional[str] = None) -> list[dict]:
    """Render a ProcessResult as the outbound message blocks."""
    data = result.data or {}
    token = data.get("token")
    if result.source == ResponseSource.POLICY_ENGINE and token and data.get("action"):
        return approval_blocks(result.text, data["action"], token)

    blocks = [_section(result.text)]
    if offers_search_all(result):
        blocks.extend(search_all_blocks(original_text, data["channel_scope"], origin_ref))
    return blocks


def outcome_blocks(outcome: ApprovalOutcome) -> list[dict]:
    """Replacement blocks for the approval message once the action is settled."""
    action = f"`{outcome.action}`" if outcome.action else "unknown"

    if outcome.state == ApprovalState.REJECTED:
        text = f"❌ *Action Rejected*\n\n*Action:* {action}\n\nAction was rejected and will not be executed."
    elif outcome.state == ApprovalState.EXECUTED:
        text = f"✅ *Action Approved and Executed*\n\n*Action:* {action}\n\n*Result:* ✅ Success"
        if outcome.result:
            text += f"\n```{json.dumps(outcome.result, indent=2)}```"
    else:
        phase = outcome.phase.value if outcome.phase else "unknown"
        text = (
            f"⚠️ *Action Approved but Execution Failed*\n\n*Action:* {action}\n\n"
            f"*Phase:* {phase}\n*Error:* {outcome.error}"
        )

    if outcome.actor:
        text += f"\n\n_by {outcome.actor}_"
    return [_section(text)]
