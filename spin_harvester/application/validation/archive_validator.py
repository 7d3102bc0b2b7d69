# spin_harvester/application/validation/archive_validator.py
import json
import logging
import os
from typing import Dict, List, Any, Optional

from spin_harvester.application.validation.report import ValidationReport
from spin_harvester.application.validation.violations import Violation, ViolationKind
from spin_harvester.domain.spin.entities.spin import Spin
from spin_harvester.domain.spin.services.round_rules import (
    aggregate_free_spin_win, check_net_profit, check_state_chain, count_non_collect_spins,
    expected_net_profit, free_spin_count_matches, free_spin_win_matches
)
from spin_harvester.infrastructure.output.archive_store import parse_round_type


class ArchiveValidator:
    """
    Re-checks persisted Session Records against the round invariants.

    Problems are accumulated into the report; nothing on a single line can
    abort the run. Line numbers are physical (1-based, blank lines counted)
    so the repair pass can address the same lines.
    """
    def __init__(self, verbose: bool = False):
        """
        Args:
            verbose: Also report the advisory free-spin checks
        """
        self.logger = logging.getLogger("application.validation.validator")
        self.verbose = verbose

    def validate_archive(self, directory: str) -> ValidationReport:
        """
        Validate every ``<game>/Spin.<n>.jsonl`` under ``directory``.

        Returns:
            A new ValidationReport
        """
        report = ValidationReport(directory=directory)
        if not os.path.isdir(directory):
            self.logger.warning(f"Archive directory not found: {directory}")
            return report

        games = sorted(
            name for name in os.listdir(directory)
            if os.path.isdir(os.path.join(directory, name))
        )
        for game in games:
            self.validate_game(os.path.join(directory, game), game, report)

        self.logger.info(
            f"Validated {report.games} games, {report.files} files, {report.records} records: "
            f"{len(report.errors)} errors, {len(report.warnings)} warnings"
        )
        return report

    def validate_game(self, game_dir: str, game: str, report: ValidationReport):
        files = sorted(name for name in os.listdir(game_dir) if parse_round_type(name) is not None)
        if not files:
            return

        report.games += 1
        report.files += len(files)
        records_before = report.records
        for file_name in files:
            self.validate_file(os.path.join(game_dir, file_name), game, report)
        self.logger.debug(f"{game}: {len(files)} files, {report.records - records_before} records")

    def validate_file(self, file_path: str, game: str, report: ValidationReport):
        file_name = os.path.basename(file_path)
        file_round_type = parse_round_type(file_name) or 0

        with open(file_path, "rb") as file:
            content = file.read()

        # Only "\n" ends a line; the repair pass counts lines the same way
        for index, raw_line in enumerate(content.split(b"\n")):
            if not raw_line.strip():
                continue
            try:
                line = raw_line.decode("utf-8")
            except UnicodeDecodeError as e:
                report.add(Violation(ViolationKind.PARSE_ERROR, game, file_name, index + 1,
                                     f"invalid UTF-8: {e}"), file_path)
                continue
            self.validate_line(line, index + 1, game, file_name, file_path, file_round_type, report)

    def validate_line(self, line: str, line_number: int, game: str, file_name: str, file_path: str,
                      file_round_type: int, report: ValidationReport):
        def flag(kind: ViolationKind, message: str, spin_index: Optional[int] = None):
            report.add(Violation(kind, game, file_name, line_number, message, spin_index), file_path)

        try:
            record = json.loads(line)
        except ValueError as e:
            flag(ViolationKind.PARSE_ERROR, f"JSON parse failed: {e}")
            return
        if not isinstance(record, dict):
            flag(ViolationKind.PARSE_ERROR, f"expected a JSON object, got {type(record).__name__}")
            return

        report.records += 1

        if record.get("err") is not None:
            flag(ViolationKind.INVALID_RECORD, f"record carries err={json.dumps(record['err'])}")
            return

        raw_spins = record.get("spins", record.get("data"))
        if not isinstance(raw_spins, list) or not raw_spins:
            flag(ViolationKind.EMPTY_DATA, "spin list is empty")
            return

        spins = [spin for spin in (Spin.from_raw(raw) for raw in raw_spins) if spin is not None]
        if not spins:
            flag(ViolationKind.EMPTY_DATA, "no parseable spins")
            return

        report.spins += len(spins)
        round_type = self._round_type(record, file_round_type)

        for violation in self.check_round(spins, round_type):
            kind, message, spin_index = violation
            flag(kind, message, spin_index)

    def check_round(self, spins: List[Spin], round_type: int) -> List[tuple]:
        """
        Apply the ordered round checks.

        Returns:
            List of (kind, message, spin_index) tuples
        """
        found = []
        first, last = spins[0], spins[-1]

        for i, spin in enumerate(spins):
            if spin.parent_round_id != first.parent_round_id:
                found.append((ViolationKind.ROUND_IDENTITY,
                              f"parent round id differs (expected={first.parent_round_id}, "
                              f"actual={spin.parent_round_id})", i))

        if first.accumulated_win != first.total_win:
            found.append((ViolationKind.FIRST_SPIN_ACCUMULATED_WIN,
                          f"first spin aw must equal tw (aw={first.accumulated_win}, tw={first.total_win})", 0))

        if first.state != 1:
            found.append((ViolationKind.FIRST_SPIN_STATE,
                          f"first spin st must be 1, got {first.state}", 0))

        if last.next_state != 1:
            found.append((ViolationKind.LAST_SPIN_NEXT_STATE,
                          f"last spin nst must be 1, got {last.next_state}", len(spins) - 1))

        for i in check_state_chain(spins):
            found.append((ViolationKind.STATE_CHAIN,
                          f"state chain broken (nst={spins[i].next_state} -> st={spins[i + 1].state})", i))

        for i, spin in enumerate(spins):
            if not check_net_profit(spin):
                found.append((ViolationKind.NET_PROFIT,
                              f"net profit mismatch (tw={spin.total_win}, tb={spin.bet_total}, "
                              f"np={spin.net_profit}, expected={expected_net_profit(spin)})", i))

        block = first.free_spin_block
        if round_type >= 1 and block is not None:
            if self.verbose and not free_spin_count_matches(spins, block):
                found.append((ViolationKind.FREE_SPIN_COUNT_MISMATCH,
                              f"free spin count mismatch (declared={block.declared_spin_count}, "
                              f"actual={count_non_collect_spins(spins)})", None))

            if not last.is_collect:
                found.append((ViolationKind.MISSING_COLLECT_MARKER,
                              f"last free spin must have wt='C', got {last.win_type_tag!r}", len(spins) - 1))

            if self.verbose and not free_spin_win_matches(spins, block):
                found.append((ViolationKind.FREE_SPIN_WIN_MISMATCH,
                              f"free spin total win mismatch (declared={block.declared_total_win}, "
                              f"computed={aggregate_free_spin_win(spins):.2f})", None))

        return found

    @staticmethod
    def _round_type(record: Dict[str, Any], file_round_type: int) -> int:
        value = record.get("roundType")
        if value is None:
            return file_round_type
        try:
            return int(value)
        except (TypeError, ValueError):
            return file_round_type
