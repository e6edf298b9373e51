"""
Callscreen — Call Timeline Tracer

Records wall-clock timestamps for call milestones:
  start_requested → call_started → call_ended → result_settled

Computes and logs the deltas. This is the single source of truth
for call timing — no ad-hoc timing elsewhere.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger("callscreen.latency")

_MILESTONES = ("start_requested", "call_started", "call_ended", "result_settled")


@dataclass
class CallTimeline:
    """Record of call milestones (wall-clock seconds, 0 = not reached)."""

    session_id: str = ""

    start_requested: float = 0.0
    call_started: float = 0.0
    call_ended: float = 0.0
    result_settled: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"session_id": self.session_id}
        for name in _MILESTONES:
            ts = getattr(self, name)
            if ts > 0:
                d[name] = ts
        d["deltas"] = self.deltas()
        return d

    def deltas(self) -> Dict[str, Optional[float]]:
        """Milliseconds between milestones."""
        def _delta(a: float, b: float) -> Optional[float]:
            if a > 0 and b > 0:
                return round((b - a) * 1000, 1)
            return None

        return {
            "connect_ms": _delta(self.start_requested, self.call_started),
            "call_duration_ms": _delta(self.call_started, self.call_ended),
            "analysis_wait_ms": _delta(self.call_ended, self.result_settled),
        }


class CallTracer:
    """
    Mutable tracer that records milestones once each and logs them.

    Usage:
        tracer = CallTracer("session-abc")
        tracer.mark("start_requested")
        tracer.mark("call_started")
    """

    def __init__(self, session_id: str) -> None:
        self._timeline = CallTimeline(session_id=session_id)

    @property
    def timeline(self) -> CallTimeline:
        return self._timeline

    def mark(self, milestone: str) -> None:
        if milestone not in _MILESTONES:
            raise ValueError(f"Unknown milestone: {milestone}")
        if getattr(self._timeline, milestone) > 0:
            return  # Already marked
        setattr(self._timeline, milestone, time.time())
        logger.info(
            f"[{self._timeline.session_id}] TIMELINE {milestone} "
            f"{self._timeline.deltas()}"
        )

    def reset(self) -> None:
        self._timeline = CallTimeline(session_id=self._timeline.session_id)

    def summary(self) -> Dict[str, Any]:
        return self._timeline.to_dict()
