"""
Alert Models - Parsed Alert Entities

Represents alerts recognized from free chat text.
A ParsedAlert is immutable once validated and scoped to one message.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from autoheal.utils.error_handling import AlertValidationError


class ParseMethod(str, Enum):
    """Extraction path that produced the alert."""
    REGEX = "regex"
    MODEL = "model"


class AlertType(str, Enum):
    """Alert shapes with a known remediation policy."""
    DISK_UTILIZATION_LOW = "disk_utilization_low"


class ParsedAlert(BaseModel):
    """
    Semantic record of a recognized alert.

    `missing_fields` names every semantically required field the extraction
    path could not determine. Names that are also attributes of this model
    must be null on the record.
    """

    alert_type: str = Field(..., min_length=1, description="Alert type tag (e.g. 'disk_utilization_low')")
    project_id: Optional[str] = Field(None, description="Cloud project of the affected instance")
    instance_name: Optional[str] = Field(None, description="Affected instance")
    metric_labels: dict[str, str] = Field(default_factory=dict, description="Metric labels from the alert")
    threshold_percent: Optional[float] = Field(None, description="Alerting threshold")
    value_percent: Optional[float] = Field(None, description="Observed value")
    policy_name: Optional[str] = Field(None, description="Monitoring policy name")
    condition_name: Optional[str] = Field(None, description="Monitoring condition name")
    violation_started_raw: Optional[str] = Field(None, description="Violation start, as written in the alert")
    source_url: Optional[str] = Field(None, description="Link back to the monitoring console")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Extraction certainty")
    missing_fields: list[str] = Field(default_factory=list, description="Required fields not found in the text")
    parse_method: ParseMethod = Field(..., description="regex or model")

    class Config:
        frozen = True

    @field_validator("alert_type")
    @classmethod
    def _alert_type_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("alert_type must be non-empty")
        return value

    @field_validator("missing_fields")
    @classmethod
    def _dedupe_missing(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for name in value:
            if name not in seen:
                seen.append(name)
        return seen

    @model_validator(mode="after")
    def _missing_fields_are_unknown(self) -> "ParsedAlert":
        for name in self.missing_fields:
            if name in ParsedAlert.model_fields and name not in ("missing_fields", "alert_type"):
                value = getattr(self, name)
                if value not in (None, {}, ""):
                    raise ValueError(f"missing_fields lists '{name}' but it is populated")
        return self

    def field_value(self, name: str) -> Any:
        """Return an attribute or metric label by name (None when unknown)."""
        if name in ParsedAlert.model_fields:
            return getattr(self, name)
        return self.metric_labels.get(name)


class ValidationResult(BaseModel):
    """Outcome of schema validation: an alert or a list of errors."""
    alert: Optional[ParsedAlert] = None
    errors: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.alert is not None

    def unwrap(self) -> ParsedAlert:
        """Return the alert or raise AlertValidationError."""
        if self.alert is None:
            raise AlertValidationError(self.errors)
        return self.alert


def validate_parsed_alert(candidate: dict) -> ValidationResult:
    """
    Validate a candidate alert dict against the ParsedAlert schema.

    Never raises for bad input; callers inspect `ValidationResult.ok`.
    """
    if not isinstance(candidate, dict):
        return ValidationResult(errors=[f"candidate must be a mapping, got {type(candidate).__name__}"])
    try:
        return ValidationResult(alert=ParsedAlert(**candidate))
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'alert'}: {err['msg']}"
            for err in e.errors()
        ]
        return ValidationResult(errors=errors)
    except TypeError as e:
        return ValidationResult(errors=[str(e)])
