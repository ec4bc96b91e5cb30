"""Per-pass bookkeeping for the catalog importer.

Every row a phase looks at ends up as a ``RowOutcome`` on that phase's
``PhaseReport``. Skips stay silent as far as the caller is concerned (nothing
is raised), but they are counted here, so a pass can be audited after the fact.
``ImportReport`` groups the phase reports of one pass together with the
extraction result and column-map warnings.
"""

from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from Samplewatch.catalog_schema import ExtractionFailure


class RowStatus(str, enum.Enum):
    imported = "imported"
    skipped_missing_field = "skipped_missing_field"
    skipped_filtered = "skipped_filtered"


@dataclass(frozen=True)
class RowOutcome:
    index: int
    status: RowStatus
    identifier: str | int | None = None
    reason: str | None = None


@dataclass
class PhaseReport:
    phase: str
    outcomes: list[RowOutcome] = field(default_factory=list)
    aborted: bool = False
    abort_reason: str | None = None
    unresolved_parents: int = 0

    def record(
        self,
        index: int,
        status: RowStatus,
        *,
        identifier: str | int | None = None,
        reason: str | None = None,
    ) -> RowOutcome:
        outcome = RowOutcome(index=index, status=status, identifier=identifier, reason=reason)
        self.outcomes.append(outcome)
        return outcome

    def abort(self, reason: str) -> None:
        self.aborted = True
        self.abort_reason = reason

    def count(self, status: RowStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def imported(self) -> int:
        return self.count(RowStatus.imported)

    @property
    def skipped(self) -> int:
        return self.count(RowStatus.skipped_missing_field)

    @property
    def filtered(self) -> int:
        return self.count(RowStatus.skipped_filtered)

    def skip_reasons(self) -> dict[str, int]:
        return dict(
            Counter(o.reason or o.status.value for o in self.outcomes if o.status is not RowStatus.imported)
        )

    def summary(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "phase": self.phase,
            "rows": len(self.outcomes),
            "imported": self.imported,
            "skipped": self.skipped,
            "filtered": self.filtered,
            "skip_reasons": self.skip_reasons(),
        }
        if self.aborted:
            out["aborted"] = True
            out["abort_reason"] = self.abort_reason
        if self.unresolved_parents:
            out["unresolved_parents"] = self.unresolved_parents
        return out


@dataclass
class ImportReport:
    run_id: str
    started_at: datetime
    finished_at: datetime | None = None
    extraction_failure: ExtractionFailure | None = None
    column_mismatches: list[str] = field(default_factory=list)
    phases: dict[str, PhaseReport] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.extraction_failure is None and self.finished_at is not None

    def add_phase(self, report: PhaseReport) -> PhaseReport:
        self.phases[report.phase] = report
        return report

    def summary(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "run_id": self.run_id,
            "completed": self.completed,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "phases": [p.summary() for p in self.phases.values()],
        }
        if self.extraction_failure is not None:
            out["extraction_failure"] = str(self.extraction_failure)
        if self.column_mismatches:
            out["column_mismatches"] = list(self.column_mismatches)
        return out
