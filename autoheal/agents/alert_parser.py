"""
Alert Parser Agent - Free Text to ParsedAlert

Extraction order:
1. Regex extractors for known alert shapes (fixed, high confidence)
2. Model-assisted extraction through Ollama (optional, self-reported confidence)

Every candidate is schema-validated; a validation failure is a non-match,
never an error.
"""

import json
import logging
import re
from typing import Callable, Optional

from autoheal.models.alert import AlertType, ParseMethod, ParsedAlert, validate_parsed_alert
from autoheal.models.report import ParseResult
from autoheal.ollama_client import OllamaClient
from autoheal.rules.policies import PolicyRegistry
from autoheal.utils.error_handling import GenerationError, call_with_timeout

logger = logging.getLogger(__name__)


REGEX_CONFIDENCE = 0.9

# Fields a remediation for each alert type depends on
REQUIRED_FIELDS: dict[str, list[str]] = {
    AlertType.DISK_UTILIZATION_LOW.value: [
        "project_id",
        "instance_name",
        "zone",
        "mig_name",
        "threshold_percent",
        "value_percent",
    ],
}
DEFAULT_REQUIRED_FIELDS = ["project_id", "instance_name"]

# Resource identifiers that live in metric_labels rather than on ParsedAlert
LABEL_FIELDS = ("zone", "mig_name")

_DISK_HEADER = re.compile(r"Disk utilization for\s+([a-z0-9\-]+)\s+([a-z0-9\-]+)", re.IGNORECASE)
_THRESHOLD_VALUE = re.compile(
    r"threshold of\s+(\d+(?:\.\d+)?)\s*%?\s+with a value of\s+(\d+(?:\.\d+)?)", re.IGNORECASE
)
_ZONE = re.compile(r"\bzone\b\s*[:=]?\s*\"?([a-z]+-[a-z]+\d+-[a-z])\b", re.IGNORECASE)
_MIG = re.compile(
    r"\b(?:instance[ _-]group(?:[ _-]manager)?|mig(?:_name)?)\b\s*[:=]\s*\"?([a-z0-9\-]+)", re.IGNORECASE
)
_POLICY = re.compile(r"^\s*Policy(?: name)?\s*:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_CONDITION = re.compile(r"^\s*Condition(?: name)?\s*:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_VIOLATION = re.compile(r"Violation started\s*:?\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
# Slack wraps links as <url|label>
_URL = re.compile(r"https?://[^\s<>|]+")
_LABEL_BLOCK = re.compile(r"\{([^{}]*=[^{}]*)\}")
_LABEL_PAIR = re.compile(r"([A-Za-z_][\w.]*)\s*=\s*\"?([^,\"}]+?)\"?\s*(?:,|$)")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _first_group(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def _extract_labels(text: str) -> dict[str, str]:
    labels: dict[str, str] = {}
    for block in _LABEL_BLOCK.findall(text):
        for key, value in _LABEL_PAIR.findall(block):
            labels[key.strip()] = value.strip()
    return labels


def compute_missing_fields(alert_type: str, candidate: dict) -> list[str]:
    """Return required fields for the alert type that the candidate does not populate."""
    labels = candidate.get("metric_labels") or {}
    missing = []
    for name in REQUIRED_FIELDS.get(alert_type, DEFAULT_REQUIRED_FIELDS):
        value = candidate.get(name) if name in ParsedAlert.model_fields else labels.get(name)
        if value in (None, ""):
            missing.append(name)
    return missing


def extract_disk_utilization(text: str) -> Optional[dict]:
    """
    Regex extractor for disk-utilization alerts.

    Recognizes "Disk utilization for <project> <instance>" and
    "threshold of <n> with a value of <n>", plus optional zone, instance
    group, policy, condition, violation start, console URL and {k=v} labels.
    """
    header = _DISK_HEADER.search(text)
    if not header:
        return None

    labels = _extract_labels(text)
    zone = _first_group(_ZONE, text) or labels.get("zone")
    mig_name = _first_group(_MIG, text) or labels.get("mig_name") or labels.get("instance_group")
    if zone:
        labels["zone"] = zone
    if mig_name:
        labels["mig_name"] = mig_name

    tv = _THRESHOLD_VALUE.search(text)
    url = _URL.search(text)

    candidate = {
        "alert_type": AlertType.DISK_UTILIZATION_LOW.value,
        "project_id": header.group(1),
        "instance_name": header.group(2),
        "metric_labels": labels,
        "threshold_percent": float(tv.group(1)) if tv else None,
        "value_percent": float(tv.group(2)) if tv else None,
        "policy_name": _first_group(_POLICY, text),
        "condition_name": _first_group(_CONDITION, text),
        "violation_started_raw": _first_group(_VIOLATION, text),
        "source_url": url.group(0) if url else None,
        "confidence": REGEX_CONFIDENCE,
        "parse_method": ParseMethod.REGEX.value,
    }
    candidate["missing_fields"] = compute_missing_fields(candidate["alert_type"], candidate)
    return candidate


REGEX_EXTRACTORS: list[Callable[[str], Optional[dict]]] = [
    extract_disk_utilization,
]


MODEL_SYSTEM_PROMPT = (
    "You extract structured data from cloud monitoring alerts.\n"
    "Return only a JSON object with fields: alert_type (one of {alert_types} or \"none\" if the "
    "text is not a monitoring alert), project_id, instance_name, zone, mig_name, "
    "threshold_percent (number), value_percent (number), policy_name, condition_name, "
    "violation_started_raw, source_url, metric_labels (object of strings), "
    "confidence (float 0.0-1.0, how sure you are). Use null for anything not stated in the text."
)


def _to_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(str(value).rstrip("%"))
    except ValueError:
        return None


def _to_str(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def candidate_from_model_output(raw: str) -> Optional[dict]:
    """Convert the model's JSON reply into a candidate dict (None when not an alert)."""
    match = _JSON_OBJECT.search(raw or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    alert_type = _to_str(data.get("alert_type"))
    if not alert_type or alert_type.lower() == "none":
        return None

    raw_labels = data.get("metric_labels") if isinstance(data.get("metric_labels"), dict) else {}
    labels = {str(k): str(v) for k, v in raw_labels.items() if v is not None}
    for name in LABEL_FIELDS:
        value = _to_str(data.get(name))
        if value:
            labels[name] = value

    confidence = _to_float(data.get("confidence"))
    candidate = {
        "alert_type": alert_type,
        "project_id": _to_str(data.get("project_id")),
        "instance_name": _to_str(data.get("instance_name")),
        "metric_labels": labels,
        "threshold_percent": _to_float(data.get("threshold_percent")),
        "value_percent": _to_float(data.get("value_percent")),
        "policy_name": _to_str(data.get("policy_name")),
        "condition_name": _to_str(data.get("condition_name")),
        "violation_started_raw": _to_str(data.get("violation_started_raw")),
        "source_url": _to_str(data.get("source_url")),
        "confidence": min(1.0, max(0.0, confidence if confidence is not None else 0.5)),
        "parse_method": ParseMethod.MODEL.value,
    }
    candidate["missing_fields"] = compute_missing_fields(alert_type, candidate)
    return candidate


class ParserEngine:
    """
    Agent responsible for turning raw chat text into a validated alert.

    Input: message text
    Output: ParseResult (matched, parsed, policy)
    Side Effects: optional model call; logs rejected candidates
    """

    AGENT_NAME = "ParserEngine"

    def __init__(
        self,
        policies: PolicyRegistry,
        llm_client: Optional[OllamaClient] = None,
        llm_enabled: bool = False,
        llm_timeout_seconds: float = 30.0,
        extractors: Optional[list[Callable[[str], Optional[dict]]]] = None,
    ):
        self._policies = policies
        self._llm = llm_client
        self._llm_enabled = llm_enabled and llm_client is not None
        self._llm_timeout = llm_timeout_seconds
        self._extractors = extractors if extractors is not None else REGEX_EXTRACTORS

    async def parse(self, text: str) -> ParseResult:
        """Parse a message into a ParseResult

        Args:
            text: Raw message text

        Returns:
            ParseResult with matched=False when no valid alert was recognized
        """
        if not text or not text.strip():
            return ParseResult(matched=False)

        for extractor in self._extractors:
            candidate = extractor(text)
            if candidate is None:
                continue
            alert = self._validate(candidate)
            if alert is not None:
                return self._matched(alert)

        if self._llm_enabled:
            candidate = await self._extract_with_model(text)
            if candidate is not None:
                alert = self._validate(candidate)
                if alert is not None:
                    return self._matched(alert)

        logger.debug(f"[{self.AGENT_NAME}] No alert recognized")
        return ParseResult(matched=False)

    def _validate(self, candidate: dict) -> Optional[ParsedAlert]:
        result = validate_parsed_alert(candidate)
        if not result.ok:
            logger.warning(
                f"[{self.AGENT_NAME}] Candidate from {candidate.get('parse_method')} failed validation: "
                f"{result.errors}"
            )
            return None
        return result.alert

    def _matched(self, alert: ParsedAlert) -> ParseResult:
        policy = self._policies.get(alert.alert_type)
        if policy is not None:
            unmet = [
                name for name in policy.required_fields
                if name not in alert.missing_fields and alert.field_value(name) in (None, "")
            ]
            if unmet:
                alert = alert.model_copy(update={"missing_fields": [*alert.missing_fields, *unmet]})
        logger.info(
            f"[{self.AGENT_NAME}] Matched {alert.alert_type} via {alert.parse_method.value} "
            f"(confidence: {alert.confidence:.2f}, missing: {alert.missing_fields}, "
            f"policy: {'yes' if policy else 'none'})"
        )
        return ParseResult(matched=True, parsed=alert, policy=policy)

    async def _extract_with_model(self, text: str) -> Optional[dict]:
        known_types = self._policies.alert_types or list(REQUIRED_FIELDS)
        system = MODEL_SYSTEM_PROMPT.format(alert_types=", ".join(known_types))
        prompt = f"Alert text:\n{text}\n\nJSON:"
        try:
            raw = await call_with_timeout(
                self._llm.generate(prompt, system=system, temperature=0.0, json_format=True),
                self._llm_timeout,
                GenerationError,
                "model-assisted alert parse",
            )
        except GenerationError as e:
            logger.warning(f"[{self.AGENT_NAME}] Model-assisted parse failed: {e}")
            return None

        candidate = candidate_from_model_output(raw)
        if candidate is None:
            logger.debug(f"[{self.AGENT_NAME}] Model did not recognize an alert")
        return candidate
