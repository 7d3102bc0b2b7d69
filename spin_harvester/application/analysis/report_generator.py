# spin_harvester/application/analysis/report_generator.py
import json
import logging
import os
import time
from typing import List, Optional

from spin_harvester.application.validation.report import ValidationReport
from spin_harvester.application.validation.violations import Violation, ViolationKind


SEPARATOR = "=" * 80


class ValidationReportGenerator:
    """
    Renders validation reports as text and, optionally, as JSON files.
    """
    def __init__(self, output_dir: Optional[str] = None, max_entries: int = 50):
        """
        Args:
            output_dir: Directory for JSON reports; None disables file output
            max_entries: Upper bound on listed errors and on listed warnings
        """
        self.logger = logging.getLogger("application.analysis.report")
        self.output_dir = output_dir
        self.max_entries = max_entries

    def render(self, report: ValidationReport, verbose: bool = False) -> str:
        """
        Build the human-readable report.

        Warnings are listed only in verbose mode.
        """
        lines = [SEPARATOR, "Archive validation report", SEPARATOR, "", "Statistics:"]
        lines.append(f"  games:   {report.games}")
        lines.append(f"  files:   {report.files}")
        lines.append(f"  records: {report.records}")
        lines.append(f"  spins:   {report.spins}")

        lines.append("")
        lines.append("Violations by kind:")
        for kind in ViolationKind:
            if kind.advisory and not verbose:
                continue
            lines.append(f"  {kind.value:<30} {report.count(kind)}")

        errors = report.errors
        if errors:
            lines.append("")
            lines.append(f"Errors ({len(errors)}):")
            lines.extend(self._bounded(errors, "errors"))

        warnings = report.warnings
        if warnings and verbose:
            lines.append("")
            lines.append(f"Warnings ({len(warnings)}):")
            lines.extend(self._bounded(warnings, "warnings"))

        if report.repair is not None:
            lines.append("")
            lines.append(f"Repair: removed {report.repair.removed_total} records")
            for path, removed in sorted(report.repair.repaired.items()):
                lines.append(f"  ok     {path}: {removed} lines")
            for path, message in sorted(report.repair.failed.items()):
                lines.append(f"  FAILED {path}: {message}")

        lines.append("")
        lines.append(SEPARATOR)
        if report.exit_code == 0:
            lines.append("Archive validation passed")
        else:
            lines.append(f"Found {len(errors)} errors, {len(warnings)} warnings; "
                         f"{len(report.removal_candidates)} removable records")
        return "\n".join(lines)

    def write_json(self, report: ValidationReport) -> Optional[str]:
        """
        Write the full report as JSON.

        Returns:
            Path of the written file, or None when no output directory is set
        """
        if not self.output_dir:
            return None
        os.makedirs(self.output_dir, exist_ok=True)

        timestamp = time.strftime("%Y%m%d-%H%M%S")
        filepath = os.path.join(self.output_dir, f"validation_report_{timestamp}.json")
        data = report.to_dict()
        data["generated_at"] = time.strftime("%Y-%m-%d %H:%M:%S")

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        self.logger.info(f"Validation report saved to {filepath}")
        return filepath

    def _bounded(self, violations: List[Violation], label: str) -> List[str]:
        lines = [f"  {violation}" for violation in violations[:self.max_entries]]
        if len(violations) > self.max_entries:
            lines.append(f"  ... {len(violations) - self.max_entries} more {label}")
        return lines
