"""
ActionToken Model - Stateless Approval Carrier

The token is embedded in the chat approval control and is the only state
that crosses the approval boundary. It must rebuild the pending action
without any server-side lookup.

The format has an explicit version but no signature or expiry.
"""

import json
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from autoheal.models.alert import ParsedAlert
from autoheal.models.decision import Decision
from autoheal.utils.error_handling import ActionTokenError

TOKEN_VERSION = 1


class ActionToken(BaseModel):
    """Serialized description of a pending remediation action."""

    version: int = Field(TOKEN_VERSION, description="Token format version")
    action: str = Field(..., min_length=1, description="Remote action identifier")
    parsed: ParsedAlert = Field(..., description="Snapshot of the parsed alert")
    decision: Decision = Field(..., description="Snapshot of the decision")
    origin_ref: Optional[str] = Field(None, description="Reference to the originating chat message")

    class Config:
        frozen = True

    def encode(self) -> str:
        """Serialize to compact JSON."""
        return json.dumps(self.model_dump(mode="json"), separators=(",", ":"), sort_keys=True)

    @classmethod
    def decode(cls, raw: str) -> "ActionToken":
        """
        Rebuild a token from its serialized form.

        Raises:
            ActionTokenError: If the payload is malformed or of an unknown version.
        """
        if not raw:
            raise ActionTokenError("Empty action token")
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise ActionTokenError(f"Action token is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ActionTokenError("Action token must be a JSON object")

        version = data.get("version")
        if version != TOKEN_VERSION:
            raise ActionTokenError(f"Unsupported action token version: {version!r}")

        try:
            return cls(**data)
        except ValidationError as e:
            raise ActionTokenError(f"Invalid action token: {e}") from e
