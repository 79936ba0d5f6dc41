"""
Pydantic schemas for the security event feed.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, Optional

from auth.models import EVENT_SEVERITIES, EVENT_SOURCE_TYPES, EVENT_TYPES


# ============ Request Schemas ============

class LogEventRequest(BaseModel):
    """
    Request to raise a security event.

    Example:
        {
            "type": "intrusion_alert",
            "severity": "high",
            "description": "Fence sensor tripped",
            "zone": "North Gate",
            "source_id": "cam-07",
            "source_type": "camera",
            "lat": 40.7128,
            "lng": -74.0060
        }
    """
    model_config = ConfigDict(extra="forbid")

    type: str
    severity: str
    description: str = Field(..., min_length=1, max_length=2000)
    zone: str = Field(..., min_length=1, max_length=255)
    source_id: str = Field(..., min_length=1, max_length=100)
    source_type: str
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in EVENT_TYPES:
            raise ValueError(f"Invalid event type: {v}")
        return v

    @field_validator("severity")
    @classmethod
    def validate_severity(cls, v):
        if v not in EVENT_SEVERITIES:
            raise ValueError(f"Invalid severity: {v}")
        return v

    @field_validator("source_type")
    @classmethod
    def validate_source_type(cls, v):
        if v not in EVENT_SOURCE_TYPES:
            raise ValueError(f"Invalid source type: {v}")
        return v


# ============ Response Schemas ============

class SecurityEventResponse(BaseModel):
    id: str
    type: str
    severity: str
    description: str
    zone: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    source_id: str
    source_type: str
    is_resolved: bool
    resolved_by: Optional[str] = None
    resolved_at: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
