# spin_harvester/application/validation/violations.py
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional


class ViolationKind(Enum):
    """Every problem the archive validator can report."""
    PARSE_ERROR = "ParseError"
    INVALID_RECORD = "InvalidRecordError"
    EMPTY_DATA = "EmptyDataError"
    ROUND_IDENTITY = "RoundIdentityError"
    FIRST_SPIN_ACCUMULATED_WIN = "FirstSpinAccumulatedWinError"
    FIRST_SPIN_STATE = "FirstSpinStateError"
    LAST_SPIN_NEXT_STATE = "LastSpinNextStateError"
    STATE_CHAIN = "StateChainError"
    NET_PROFIT = "NetProfitError"
    FREE_SPIN_COUNT_MISMATCH = "FreeSpinCountMismatch"
    MISSING_COLLECT_MARKER = "MissingCollectMarkerError"
    FREE_SPIN_WIN_MISMATCH = "FreeSpinWinMismatch"

    @property
    def advisory(self) -> bool:
        """Advisory kinds are warnings: never removable, never fail the run."""
        return self in ADVISORY_KINDS


ADVISORY_KINDS = frozenset({
    ViolationKind.FREE_SPIN_COUNT_MISMATCH,
    ViolationKind.FREE_SPIN_WIN_MISMATCH,
})


@dataclass(frozen=True)
class Violation:
    """One finding, tagged with its location in the archive."""
    kind: ViolationKind
    game: str
    file: str
    line: int
    message: str
    spin_index: Optional[int] = None

    @property
    def advisory(self) -> bool:
        return self.kind.advisory

    @property
    def location(self) -> str:
        if self.spin_index is None:
            return f"line {self.line}"
        return f"line {self.line} spin[{self.spin_index}]"

    def __str__(self) -> str:
        return f"[{self.game}/{self.file}] {self.location}: {self.kind.value}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "advisory": self.advisory,
            "game": self.game,
            "file": self.file,
            "line": self.line,
            "spin_index": self.spin_index,
            "message": self.message,
        }


class RepairWriteError(Exception):
    """Pruning a file failed its write or read-back check; the file was restored."""
    def __init__(self, file_path: str, message: str):
        self.file_path = file_path
        self.message = message
        super().__init__(f"Repair of {file_path} failed: {message}")
