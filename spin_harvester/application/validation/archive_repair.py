# spin_harvester/application/validation/archive_repair.py
import logging
import os
import shutil
from typing import Iterable

from spin_harvester.application.validation.report import ValidationReport, RepairOutcome
from spin_harvester.application.validation.violations import RepairWriteError


class ArchiveRepairer:
    """
    Removes flagged lines from archive files.

    Per file: back up to ``<file>.bak``, drop exactly the flagged physical
    lines, check the line count before and after writing, then delete the
    backup. Any mismatch or I/O error restores the file from the backup
    and reports it as failed. Field values are never edited.

    Files are handled as bytes split on line feeds only, which is how the
    validator numbers lines; undecodable lines can be removed as well.
    """
    BACKUP_SUFFIX = ".bak"

    def __init__(self):
        self.logger = logging.getLogger("application.validation.repair")

    def repair(self, report: ValidationReport) -> RepairOutcome:
        """
        Prune every removal candidate of a report.

        The outcome is also stored on ``report.repair``.
        """
        outcome = RepairOutcome()
        for file_path, line_numbers in report.candidates_by_file().items():
            try:
                removed = self.repair_file(file_path, line_numbers)
                outcome.repaired[file_path] = removed
            except RepairWriteError as e:
                self.logger.error(str(e))
                outcome.failed[file_path] = e.message

        self.logger.info(f"Removed {outcome.removed_total} invalid records "
                         f"from {len(outcome.repaired)} files ({len(outcome.failed)} failed)")
        report.repair = outcome
        return outcome

    def repair_file(self, file_path: str, line_numbers: Iterable[int]) -> int:
        """
        Remove the given 1-based physical lines from one file.

        Returns:
            Number of removed lines

        Raises:
            RepairWriteError: The file could not be pruned; it is left as it was
        """
        to_remove = set(line_numbers)
        backup_path = file_path + self.BACKUP_SUFFIX
        backup_written = False

        try:
            with open(file_path, "rb") as file:
                content = file.read()
            lines = content.split(b"\n")
            original_count = len(lines)

            with open(backup_path, "wb") as file:
                file.write(content)
            backup_written = True

            remaining = [line for index, line in enumerate(lines) if index + 1 not in to_remove]
            expected_count = original_count - len(to_remove)
            if len(remaining) != expected_count:
                raise RepairWriteError(
                    file_path, f"line count mismatch: expected {expected_count}, got {len(remaining)}"
                )

            self._write(file_path, b"\n".join(remaining))

            with open(file_path, "rb") as file:
                written_count = len(file.read().split(b"\n"))
            if written_count != len(remaining):
                raise RepairWriteError(
                    file_path, f"read-back mismatch: expected {len(remaining)} lines, found {written_count}"
                )
        except (OSError, RepairWriteError) as e:
            if backup_written:
                self._restore(backup_path, file_path)
            if isinstance(e, RepairWriteError):
                raise
            raise RepairWriteError(file_path, str(e)) from e

        os.remove(backup_path)
        self.logger.info(f"{file_path}: removed {len(to_remove)} lines ({original_count} -> {len(remaining)})")
        return len(to_remove)

    def _write(self, file_path: str, content: bytes):
        with open(file_path, "wb") as file:
            file.write(content)

    def _restore(self, backup_path: str, file_path: str):
        """Copy the backup back; the backup is kept for inspection."""
        try:
            shutil.copyfile(backup_path, file_path)
            self.logger.warning(f"Restored {file_path} from {backup_path}")
        except OSError as e:
            self.logger.error(f"Could not restore {file_path} from {backup_path}: {e}")
