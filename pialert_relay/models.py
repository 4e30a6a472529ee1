"""Pydantic models for alert payloads, poll outcomes and controller state."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RelayState(str, Enum):
    ON = "ON"
    OFF = "OFF"

    @classmethod
    def from_bool(cls, on: bool) -> "RelayState":
        return cls.ON if on else cls.OFF

    @property
    def is_on(self) -> bool:
        return self is RelayState.ON

    def negate(self) -> "RelayState":
        return RelayState.OFF if self.is_on else RelayState.ON


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    AUTH_FAILED = "auth_failed"
    API_ERROR = "api_error"
    TRANSPORT_ERROR = "transport_error"
    MANUAL_OVERRIDE = "manual_override"


class FailingTarget(BaseModel):
    """A monitored target that has crossed its failure threshold."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    failures: int
    threshold: int

    def summary(self) -> str:
        return f"{self.name} ({self.failures}/{self.threshold})"


class AlertSnapshot(BaseModel):
    """Decoded body of a successful alert-status response.

    Example payload:
        {
            "alert": true,
            "failing_count": 1,
            "failing_targets": [{"name": "db", "failures": 3, "threshold": 3}]
        }
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    alert: bool
    failing_count: int = Field(default=0, ge=0)
    failing_targets: List[FailingTarget] = Field(default_factory=list)


# Poll outcomes returned by AlertClient.poll()

class Success(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind = OutcomeKind.SUCCESS
    snapshot: AlertSnapshot
    status_code: int = 200


class RateLimited(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind = OutcomeKind.RATE_LIMITED
    retry_after: Optional[str] = None
    status_code: int = 429


class AuthFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind = OutcomeKind.AUTH_FAILED
    status_code: int = 401


class ApiError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind = OutcomeKind.API_ERROR
    status_code: int


class TransportError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind = OutcomeKind.TRANSPORT_ERROR
    message: str


PollOutcome = Union[Success, RateLimited, AuthFailed, ApiError, TransportError]


class PollRecord(BaseModel):
    """One history entry, produced per poll tick or manual action.

    Attributes:
        timestamp: When the call committed (UTC)
        kind: Classified outcome
        relay_state: Resulting relay state, None when the outcome did not actuate
        detail: Human-readable summary
        status_code: HTTP status of the poll if one was received
        alert: Alert flag of a successful poll
    """
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    kind: OutcomeKind
    relay_state: Optional[RelayState] = None
    detail: str = ""
    status_code: Optional[int] = None
    alert: Optional[bool] = None


class ControllerSnapshot(BaseModel):
    """Read model served by the control surface."""
    relay_state: RelayState
    last_poll_time: Optional[datetime] = None
    last_alert: Optional[AlertSnapshot] = None
    api_url: str
    poll_interval_ms: int
