# spin_harvester/application/validation/report.py
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Set, Tuple

from spin_harvester.application.validation.violations import Violation, ViolationKind


@dataclass(frozen=True)
class RemovalCandidate:
    """An archive line with at least one non-advisory violation."""
    game: str
    file: str
    file_path: str
    line: int


@dataclass
class RepairOutcome:
    repaired: Dict[str, int] = field(default_factory=dict)   # file path -> removed line count
    failed: Dict[str, str] = field(default_factory=dict)     # file path -> error message

    @property
    def removed_total(self) -> int:
        return sum(self.repaired.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repaired": dict(self.repaired),
            "failed": dict(self.failed),
            "removed_total": self.removed_total,
        }


@dataclass
class ValidationReport:
    """
    Result of one validation run.

    Built fresh for every run and returned to the caller; nothing is kept
    at module level, so runs over different archives never interfere.
    """
    directory: str
    games: int = 0
    files: int = 0
    records: int = 0
    spins: int = 0
    counts: Counter = field(default_factory=Counter)
    violations: List[Violation] = field(default_factory=list)
    removal_candidates: List[RemovalCandidate] = field(default_factory=list)
    repair: Optional[RepairOutcome] = None
    _candidate_keys: Set[Tuple[str, int]] = field(default_factory=set, repr=False)

    def add(self, violation: Violation, file_path: str):
        """Record a violation; non-advisory ones make the line a removal candidate."""
        self.violations.append(violation)
        self.counts[violation.kind] += 1
        if violation.advisory:
            return
        key = (file_path, violation.line)
        if key not in self._candidate_keys:
            self._candidate_keys.add(key)
            self.removal_candidates.append(
                RemovalCandidate(violation.game, violation.file, file_path, violation.line)
            )

    @property
    def errors(self) -> List[Violation]:
        return [v for v in self.violations if not v.advisory]

    @property
    def warnings(self) -> List[Violation]:
        return [v for v in self.violations if v.advisory]

    @property
    def exit_code(self) -> int:
        return 1 if any(not v.advisory for v in self.violations) else 0

    def count(self, kind: ViolationKind) -> int:
        return self.counts.get(kind, 0)

    def candidates_by_file(self) -> Dict[str, List[int]]:
        grouped: Dict[str, List[int]] = {}
        for candidate in self.removal_candidates:
            grouped.setdefault(candidate.file_path, []).append(candidate.line)
        return grouped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directory": self.directory,
            "games": self.games,
            "files": self.files,
            "records": self.records,
            "spins": self.spins,
            "counts": {kind.value: count for kind, count in sorted(self.counts.items(), key=lambda i: i[0].value)},
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "violations": [v.to_dict() for v in self.violations],
            "removal_candidates": [
                {"game": c.game, "file": c.file, "line": c.line} for c in self.removal_candidates
            ],
            "repair": self.repair.to_dict() if self.repair else None,
            "exit_code": self.exit_code,
        }
