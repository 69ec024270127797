"""
Pydantic schemas for pipeline run descriptors, policies and lifecycle events
"""

from datetime import datetime, timezone
from typing import Optional, List, Any, Callable, Literal
import enum
import math
import re

from pydantic import BaseModel, Field, ConfigDict, field_validator

from core.config import settings
from schemas.connector import Connector


# ============================================================================
# ENUMS
# ============================================================================

class EventType(str, enum.Enum):
    """Pipeline event kinds"""
    START = "start"
    EXTRACT = "extract"
    TRANSFORM = "transform"
    LOAD = "load"
    ERROR = "error"
    COMPLETE = "complete"
    INFO = "info"


class RunState(str, enum.Enum):
    """States of one pipeline run"""
    START = "start"
    RESOLVE_SOURCE = "resolve_source"
    CONNECT_SOURCE = "connect_source"
    EXTRACT = "extract"
    TRANSFORM = "transform"
    ONLOAD = "onload"
    PRESEND_HOOK = "presend_hook"
    RESOLVE_TARGET = "resolve_target"
    CONNECT_TARGET = "connect_target"
    UPLOAD_BATCHES = "upload_batches"
    ONUPLOAD = "onupload"
    COMPLETE = "complete"
    HALTED = "halted"
    FAILED = "failed"


# ============================================================================
# Policies
# ============================================================================

class ErrorHandling(BaseModel):
    """
    Retry policy applied to every page fetch and every upload batch.

    max_retries counts additional attempts after the first; retry_interval
    is a fixed delay in milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default_factory=lambda: settings.DEFAULT_MAX_RETRIES, ge=0)
    retry_interval: int = Field(default_factory=lambda: settings.DEFAULT_RETRY_INTERVAL_MS, ge=0)
    fail_on_error: bool = Field(default_factory=lambda: settings.DEFAULT_FAIL_ON_ERROR)


class RateLimiting(BaseModel):
    model_config = ConfigDict(frozen=True)

    requests_per_second: float = Field(math.inf, gt=0)
    # Accepted for compatibility with stored pipeline definitions; not acted on
    max_retries_on_rate_limit: int = Field(0, ge=0)


class Schedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    frequency: Literal["hourly", "daily", "weekly"]
    at: str = "00:00"

    @field_validator("at")
    @classmethod
    def validate_at(cls, v):
        """Ensure at is HH:MM"""
        match = re.fullmatch(r"(\d{1,2}):(\d{2})", v.strip())
        if not match:
            raise ValueError("at must be formatted as HH:MM")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError("at must be a valid time of day")
        return f"{hour:02d}:{minute:02d}"

    @property
    def hour(self) -> int:
        return int(self.at.split(":")[0])

    @property
    def minute(self) -> int:
        return int(self.at.split(":")[1])


# ============================================================================
# Pipeline
# ============================================================================

class Pipeline(BaseModel):
    """
    Run descriptor for one runPipeline invocation.

    Exactly one of source / data must be usable; that is checked by the
    runner so the failure surfaces as InvalidPipelineError.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    data: Optional[List[Any]] = None
    source: Optional[Connector] = None
    target: Optional[Connector] = None
    schedule: Optional[Schedule] = None
    error_handling: Optional[ErrorHandling] = None
    rate_limiting: Optional[RateLimiting] = None

    # Lifecycle callbacks
    logging: Optional[Callable[["PipelineEvent"], Any]] = None
    onload: Optional[Callable[[List[Any]], Any]] = None
    onbeforesend: Optional[Callable[[List[Any]], Any]] = None
    onupload: Optional[Callable[[], Any]] = None


class PipelineEvent(BaseModel):
    """Immutable lifecycle log record"""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    type: EventType
    message: str
    data_count: Optional[int] = None
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class PipelineResult(BaseModel):
    """Return value of a pipeline run: records as they stood after extract/transform"""

    data: List[Any] = Field(default_factory=list)


Pipeline.model_rebuild()
