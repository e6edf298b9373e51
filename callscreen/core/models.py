"""
Callscreen — Data Models

Dataclasses for every piece of data flowing through the system.
All of them are transient and live only as long as one call or query.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger("callscreen.models")


def is_ready(body: Any) -> bool:
    """Readiness predicate: the body carries both `analysis` and `summary`."""
    if not isinstance(body, Mapping):
        return False
    return bool(body.get("analysis")) and bool(body.get("summary"))


# ---------------------------------------------------------------------------
# Call start input
# ---------------------------------------------------------------------------

@dataclass
class CallerDetails:
    """Form fields handed to the assistant as template variables."""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CallerDetails":
        return cls(
            first_name=str(data.get("first_name", "")).strip(),
            last_name=str(data.get("last_name", "")).strip(),
            email=str(data.get("email", "")).strip(),
            phone_number=str(data.get("phone_number", "")).strip(),
        )

    def to_variables(self) -> Dict[str, str]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phoneNumber": self.phone_number,
        }


# ---------------------------------------------------------------------------
# Live call
# ---------------------------------------------------------------------------

@dataclass
class CallSession:
    """One voice-assistant call, mutated by voice lifecycle events."""
    id: str = ""
    started: bool = False
    speaking: bool = False
    volume_level: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CallResult:
    """Finalised post-call analysis. Only built from a ready body."""
    analysis: Dict[str, Any]
    summary: str
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> "CallResult":
        if not is_ready(body):
            raise ValueError("call details are not ready (missing analysis or summary)")
        analysis = body["analysis"]
        if not isinstance(analysis, Mapping):
            analysis = {"value": analysis}
        return cls(analysis=dict(analysis), summary=str(body["summary"]), raw=dict(body))

    @property
    def structured_data(self) -> Dict[str, Any]:
        data = self.analysis.get("structuredData")
        return dict(data) if isinstance(data, Mapping) else {}

    @property
    def task_score(self) -> Optional[float]:
        """Numeric Task_Score, or None when absent or not a number."""
        score = self.structured_data.get("Task_Score")
        if isinstance(score, bool):
            return None
        if isinstance(score, (int, float)):
            return score
        if isinstance(score, str):
            try:
                return float(score)
            except ValueError:
                pass
        if score is not None:
            logger.warning(f"Ignoring non-numeric Task_Score: {score!r}")
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis,
            "summary": self.summary,
            "task_score": self.task_score,
        }


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------

class StopReason(str, Enum):
    """Why a poll run ended. Logged only; callers see result or None."""
    READY = "ready"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    FAILED = "failed"
    NO_SESSION = "no_session"


@dataclass
class PollOutcome:
    call_id: str = ""
    attempts: int = 0
    reason: StopReason = StopReason.NO_SESSION
    started_at: float = field(default_factory=time.time)
    elapsed_ms: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["reason"] = self.reason.value
        return d


# ---------------------------------------------------------------------------
# Query exchange
# ---------------------------------------------------------------------------

@dataclass
class QueryExchange:
    """The single live question/answer pair of the query page."""
    input_text: str = ""
    response_text: str = ""
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
