"""
Remediation Tools - Two-Phase Remote Execution Client

Wraps the remote tool server's two named requests:
1. discover_instance_metadata: resolve zone / MIG / project for an instance
2. execute_recreate_instance: recreate the instance inside its MIG

Both go through the same ToolConnectionManager and share timeout handling.
Error payloads (`{"error": ...}` or isError results), transport failures and
timeouts all surface as DiscoveryError / ExecutionError.
"""

import logging
from typing import Any, Optional

from autoheal.models.execution import InstanceMetadata
from autoheal.tools.mcp_client import ToolCallResult, ToolConnectionManager
from autoheal.utils.error_handling import (
    DiscoveryError,
    ExecutionError,
    RemoteToolError,
    ToolTransportError,
    call_with_timeout,
)

logger = logging.getLogger(__name__)

DISCOVER_TOOL = "discover_instance_metadata"
RECREATE_TOOL = "execute_recreate_instance"


def _error_text(result: ToolCallResult) -> Optional[str]:
    """Return the error carried by a tool result, or None on success."""
    payload = result.payload
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    if result.is_error:
        return result.text or "Unknown error"
    if payload is None:
        return result.text or "Empty response from tool server"
    return None


class RemediationToolClient:
    """Client for the remediation tool server."""

    def __init__(self, connections: ToolConnectionManager, timeout_seconds: float = 30.0):
        self._connections = connections
        self._timeout = timeout_seconds

    async def _call(
        self,
        tool_name: str,
        args: dict[str, Any],
        error_cls: type[RemoteToolError],
    ) -> dict:
        async def _invoke() -> ToolCallResult:
            transport = await self._connections.get_or_init()
            return await transport.call(tool_name, args)

        try:
            result = await call_with_timeout(_invoke(), self._timeout, error_cls, tool_name)
        except ToolTransportError as e:
            raise error_cls(str(e)) from e

        error = _error_text(result)
        if error is not None:
            raise error_cls(error)
        if not isinstance(result.payload, dict):
            raise error_cls(f"Unexpected response from {tool_name}: {result.text}")
        return result.payload

    async def discover_instance_metadata(
        self,
        instance_name: str,
        project_id: Optional[str] = None,
    ) -> InstanceMetadata:
        """
        Resolve the zone and MIG that own an instance.

        Raises:
            DiscoveryError: On error payloads, transport failures or timeouts.
        """
        args: dict[str, Any] = {"instanceName": instance_name}
        if project_id:
            args["projectId"] = project_id

        payload = await self._call(DISCOVER_TOOL, args, DiscoveryError)

        zone = payload.get("zone")
        mig_name = payload.get("migName")
        if not zone or not mig_name:
            raise DiscoveryError(f"Discovery response is missing zone or migName: {payload}")

        metadata = InstanceMetadata(zone=zone, mig_name=mig_name, project_id=payload.get("projectId"))
        logger.info(
            f"Discovered {instance_name}: zone={metadata.zone} mig={metadata.mig_name} "
            f"project={metadata.project_id}"
        )
        return metadata

    async def execute_recreate_instance(
        self,
        project_id: Optional[str],
        zone: str,
        mig_name: str,
        instance_name: str,
    ) -> dict:
        """
        Recreate an instance in its managed instance group.

        Raises:
            ExecutionError: On error payloads, `success: false`, transport failures or timeouts.
        """
        args = {
            "projectId": project_id,
            "zone": zone,
            "migName": mig_name,
            "instanceName": instance_name,
        }
        payload = await self._call(RECREATE_TOOL, args, ExecutionError)

        if payload.get("success") is False:
            raise ExecutionError(payload.get("message") or f"{RECREATE_TOOL} reported failure")

        logger.info(f"Recreate requested for {instance_name} in {mig_name} ({zone})")
        return payload
