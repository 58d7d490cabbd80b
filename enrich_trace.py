"""
Per-enrichment tracing.

One EnrichmentTrace lives for one enrich(listing_id) pass and is parked
in thread-local storage so provider clients can report outbound calls
without it being threaded through every signature.  It collects:

  - a StageTiming per pipeline stage (ok / skipped / error, elapsed ms)
  - a ProviderAttempt per geocoding request (provider, HTTP status, outcome)

and logs one summary line when the pass ends.

    trace = EnrichmentTrace(listing_id="1042")
    set_trace(trace)
    started = trace.begin("geocoding")
    ...                                  # providers call get_trace().record_provider_call()
    trace.finish(started)
    trace.log_summary()
    clear_trace()
"""

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class StageStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class ProviderAttempt:
    provider: str          # "google" | "opencage" | "nominatim"
    elapsed_ms: int
    http_status: int       # 0 = no response (timeout, connection refused)
    outcome: str           # provider status string, or timeout / network_error / http_error / bad_json
    stage: str = ""


@dataclass
class StageTiming:
    name: str
    elapsed_ms: int
    status: StageStatus = StageStatus.OK
    error: str = ""
    provider_attempts: int = 0


def _ms_since(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


@dataclass
class EnrichmentTrace:
    """Timing record for one enrichment pass over one listing."""
    listing_id: str
    started: float = field(default_factory=time.monotonic)
    stages: List[StageTiming] = field(default_factory=list)
    attempts: List[ProviderAttempt] = field(default_factory=list)
    active_stage: str = ""

    @property
    def trace_id(self) -> str:
        return f"listing-{self.listing_id}"

    def begin(self, stage_name: str) -> float:
        """Mark stage_name as running; returns the start time for finish()."""
        self.active_stage = stage_name
        return time.monotonic()

    def finish(self, started: float, status: StageStatus = StageStatus.OK, error: str = "") -> StageTiming:
        name = self.active_stage
        timing = StageTiming(
            name=name,
            elapsed_ms=_ms_since(started),
            status=StageStatus(status),
            error=error,
            provider_attempts=sum(1 for a in self.attempts if a.stage == name),
        )
        self.stages.append(timing)
        self.active_stage = ""

        logger.info(
            "  [stage] %s %s %s %dms%s",
            self.trace_id, name, timing.status.value, timing.elapsed_ms,
            f" ({error})" if error else "",
        )
        return timing

    def record_provider_call(self, provider: str, elapsed_ms: int, http_status: int, outcome: str):
        self.attempts.append(ProviderAttempt(provider, elapsed_ms, http_status, outcome, self.active_stage))
        logger.info(
            "  [geocode] %s provider=%s %dms http=%d outcome=%s",
            self.trace_id, provider, elapsed_ms, http_status, outcome,
        )

    def outcome(self) -> str:
        """success, partial (some stages errored), error (every stage that ran
        errored) or empty (nothing ran)."""
        counts = Counter(s.status for s in self.stages)
        ran_ok, failed = counts[StageStatus.OK], counts[StageStatus.ERROR]
        if failed:
            return "partial" if ran_ok else "error"
        return "success" if ran_ok else "empty"

    def summary_dict(self) -> Dict[str, Any]:
        counts = Counter(s.status.value for s in self.stages)
        return {
            "listing_id": self.listing_id,
            "elapsed_ms": _ms_since(self.started),
            "outcome": self.outcome(),
            "stage_counts": {status.value: counts.get(status.value, 0) for status in StageStatus},
            "providers_tried": [a.provider for a in self.attempts],
            "stages": [
                {
                    "name": s.name,
                    "status": s.status.value,
                    "elapsed_ms": s.elapsed_ms,
                    "error": s.error or None,
                }
                for s in self.stages
            ],
        }

    def log_summary(self):
        summary = self.summary_dict()
        counts = summary["stage_counts"]
        logger.info(
            "[enrich-summary] %s outcome=%s %dms ok=%d skipped=%d error=%d providers=%s",
            self.trace_id, summary["outcome"], summary["elapsed_ms"],
            counts["ok"], counts["skipped"], counts["error"],
            ",".join(summary["providers_tried"]) or "-",
        )


# Thread-local slot for the active trace
_local = threading.local()


def get_trace() -> Optional[EnrichmentTrace]:
    return getattr(_local, "trace", None)


def set_trace(trace: Optional[EnrichmentTrace]):
    _local.trace = trace


def clear_trace():
    set_trace(None)
