"""Per-iteration diagnostic snapshots for the control loop.

Keeps a rolling in-memory record of recent runs: the proposals, decision and
working-memory state of every iteration. When a debug directory is
configured, each iteration is also written out as a JSON file. Diagnostics
must never break a run, so write failures are logged and dropped.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional

from mindloop.core.models import Decision, Proposal

logger = logging.getLogger("mindloop.orchestrator.diagnostics")

MAX_HISTORY = 50  # Rolling window of diagnostic runs


@dataclass
class IterationRecord:
    """What one loop iteration saw and decided."""
    iteration: int
    timestamp: datetime
    proposals: list[dict[str, Any]] = field(default_factory=list)
    decision: Optional[dict[str, Any]] = None
    state: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "iteration": self.iteration,
            "timestamp": self.timestamp.isoformat(),
            "proposals": list(self.proposals),
            "decision": self.decision,
            "state": dict(self.state),
        }


@dataclass
class RunDiagnostics:
    """Complete diagnostic snapshot for a single control-loop run."""
    run_id: str
    conversation_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    iterations: list[IterationRecord] = field(default_factory=list)
    outcome: str = "in_progress"

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "conversation_id": self.conversation_id,
            "started_at": self.started_at.isoformat(),
            "outcome": self.outcome,
            "total_iterations": len(self.iterations),
            "iterations": [r.to_dict() for r in self.iterations],
        }


class DiagnosticsCollector:
    """Collects iteration snapshots during control-loop execution."""

    def __init__(
        self,
        max_history: int = MAX_HISTORY,
        debug_dir: str | Path | None = None,
    ):
        self._history: deque[RunDiagnostics] = deque(maxlen=max_history)
        self._current: Optional[RunDiagnostics] = None
        self.debug_dir = Path(debug_dir) if debug_dir else None

    def start_run(self, run_id: str, conversation_id: str) -> RunDiagnostics:
        """Begin a new diagnostic run."""
        diag = RunDiagnostics(run_id=run_id, conversation_id=conversation_id)
        self._current = diag
        self._history.append(diag)
        return diag

    def record_iteration(
        self,
        iteration: int,
        proposals: list[Proposal],
        decision: Optional[Decision],
        state: dict[str, Any],
    ) -> Optional[IterationRecord]:
        """Record one iteration; never raises."""
        try:
            record = IterationRecord(
                iteration=iteration,
                timestamp=datetime.now(UTC),
                proposals=[p.model_dump(mode="json") for p in proposals],
                decision=decision.model_dump(mode="json") if decision is not None else None,
                state=json.loads(json.dumps(state, default=str)),
            )
            if self._current is not None:
                self._current.iterations.append(record)
            if self.debug_dir is not None and self._current is not None:
                self._write_iteration(self._current.run_id, record)
            return record
        except Exception as e:
            logger.warning("Failed to record diagnostics for iteration %d: %s", iteration, e)
            return None

    def complete_run(self, outcome: str) -> Optional[RunDiagnostics]:
        """Mark the current run as complete."""
        if self._current is None:
            return None
        self._current.outcome = outcome
        completed = self._current
        self._current = None
        return completed

    def _write_iteration(self, run_id: str, record: IterationRecord) -> None:
        path = self.debug_dir / run_id / f"iteration_{record.iteration:03d}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(record.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write diagnostics to %s: %s", path, e)

    def dump_to_file(self, output_path: str | Path, run_id: Optional[str] = None) -> Path:
        """Dump diagnostics to a JSON file for debugging.

        Args:
            output_path: Directory or file path to write to.
            run_id: Optional filter, only dump diagnostics for this run.

        Returns:
            Path to the written file.
        """
        path = Path(output_path)

        runs = list(self._history)
        if run_id:
            runs = [r for r in runs if r.run_id == run_id]

        data = {
            "generated_at": datetime.now(UTC).isoformat(),
            "total_runs": len(runs),
            "runs": [r.to_dict() for r in runs],
        }

        if path.is_dir():
            filename = f"diagnostics_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S')}.json"
            path = path / filename

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info("Diagnostics dumped to %s (%d runs)", path, len(runs))
        return path

    def get_current(self) -> Optional[RunDiagnostics]:
        return self._current

    def get_history(self, limit: int = 10) -> list[RunDiagnostics]:
        """Get recent diagnostic runs."""
        runs = list(self._history)
        return runs[-limit:] if len(runs) > limit else runs
