"""
Routing decision logging.

Appends one JSON line per routed request so escalation behaviour and
user overrides can be analyzed offline, or used to tune patterns and
thresholds.

Usage:
    from taskmatrix.decision_log import DecisionLogger

    decisions = DecisionLogger(LoggingConfig(log_decisions=True))
    decisions.log_decision(request, result)
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import LoggingConfig
from .types import ClassificationRequest, ClassificationResult

logger = logging.getLogger(__name__)


@dataclass
class RoutingDecisionLog:
    """A single logged routing decision."""

    correlation_id: str
    text: str
    capability: str
    quadrant: str
    confidence: float
    provider_id: str
    provider_kind: str
    escalated: bool
    rule_confidence: float | None
    fallback_reason: str | None
    latency_ms: float
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoutingDecisionLog:
        return cls(**data)


class DecisionLogger:
    """Writes routing decisions to a rotating JSONL file."""

    def __init__(self, config: LoggingConfig | None = None):
        self.config = config or LoggingConfig()
        self._log_path: Path | None = None
        self._decision_count = 0

        if self.config.log_decisions:
            path = Path(self.config.log_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            self._log_path = path

    @property
    def enabled(self) -> bool:
        return self._log_path is not None

    def _check_rotation(self) -> None:
        if self._log_path is None or not self._log_path.exists():
            return
        size_mb = self._log_path.stat().st_size / (1024 * 1024)
        if size_mb >= self.config.max_size_mb:
            self._rotate_logs()

    def _rotate_logs(self) -> None:
        if self._log_path is None:
            return

        for i in range(self.config.max_files - 1, 0, -1):
            old_path = self._log_path.with_suffix(f".jsonl.{i}")
            new_path = self._log_path.with_suffix(f".jsonl.{i + 1}")
            if old_path.exists():
                if i + 1 >= self.config.max_files:
                    old_path.unlink()
                else:
                    old_path.rename(new_path)

        if self._log_path.exists():
            self._log_path.rename(self._log_path.with_suffix(".jsonl.1"))

        logger.info(f"Rotated decision log: {self._log_path}")

    def log_decision(
        self,
        request: ClassificationRequest,
        result: ClassificationResult,
        latency_ms: float = 0.0,
    ) -> None:
        """Record one routed request. Write errors are logged, not raised."""
        if self._log_path is None:
            return

        provenance = result.provenance
        entry = RoutingDecisionLog(
            correlation_id=request.correlation_id,
            text=request.text[:500],
            capability=request.capability.value,
            quadrant=result.quadrant.value,
            confidence=result.confidence,
            provider_id=provenance.provider_id,
            provider_kind=provenance.kind.value,
            escalated=provenance.escalated,
            rule_confidence=provenance.rule_confidence,
            fallback_reason=provenance.fallback_reason,
            latency_ms=latency_ms,
            timestamp=datetime.now().isoformat(),
        )

        try:
            self._check_rotation()
            with open(self._log_path, "a") as f:
                f.write(json.dumps(entry.to_dict()) + "\n")
            self._decision_count += 1
        except OSError as e:
            logger.warning(f"Failed to log decision: {e}")

    def log_override(self, correlation_id: str, original: str, override: str) -> None:
        """Record a user correction as a separate entry."""
        if self._log_path is None:
            return

        entry = {
            "type": "override",
            "correlation_id": correlation_id,
            "original": original,
            "override": override,
            "timestamp": datetime.now().isoformat(),
        }
        try:
            with open(self._log_path, "a") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            logger.warning(f"Failed to log override: {e}")

    def load_decisions(self) -> list[RoutingDecisionLog]:
        """Read back logged decisions, skipping override and malformed lines."""
        decisions: list[RoutingDecisionLog] = []
        if self._log_path is None or not self._log_path.exists():
            return decisions

        with open(self._log_path) as f:
            for line in f:
                try:
                    data = json.loads(line)
                    if data.get("type") == "override":
                        continue
                    decisions.append(RoutingDecisionLog.from_dict(data))
                except (json.JSONDecodeError, TypeError) as e:
                    logger.warning(f"Skipping malformed line: {e}")

        return decisions

    def get_statistics(self) -> dict[str, Any]:
        stats: dict[str, Any] = {
            "enabled": self.enabled,
            "log_path": str(self._log_path) if self._log_path else None,
            "decisions_logged": self._decision_count,
        }
        if self._log_path and self._log_path.exists():
            stats["log_size_mb"] = self._log_path.stat().st_size / (1024 * 1024)
        return stats


__all__ = ["DecisionLogger", "RoutingDecisionLog"]
