# spin_harvester/application/conversion/simulate_converter.py
import gzip
import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, Any, Optional

from spin_harvester.domain.spin.entities.round import SessionRecord
from spin_harvester.domain.spin.services.content_hash import compute_content_hash
from spin_harvester.infrastructure.output.archive_store import spin_file_name


CONVERTED_ROUND_TYPE = 1
GAME_DIR_PREFIX = "pg_"
DUMP_NAMES = ("simulate.json", "simulate.json.gz")


@dataclass
class ConversionStats:
    input_path: str
    output_path: str
    written: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_path": self.input_path,
            "output_path": self.output_path,
            "written": self.written,
            "skipped": self.skipped,
        }


class SimulateDumpConverter:
    """
    Converts exported simulation dumps into archive files.

    A dump holds one JSON object per line whose ``data`` list contains bare
    spin-info dictionaries. Each entry is wrapped as a provider response
    ``{"dt": {"si": ...}, "err": null}`` and the line becomes a Session
    Record of round type 1.
    """
    def __init__(self):
        self.logger = logging.getLogger("application.conversion.simulate")

    def convert_file(self, input_path: str, output_path: str) -> ConversionStats:
        """
        Convert one ``simulate.json`` or ``simulate.json.gz`` file.

        Lines that are not JSON or carry no ``data`` list are skipped with an
        error log. The output file is overwritten.
        """
        stats = ConversionStats(input_path, output_path)
        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        opener = gzip.open if input_path.endswith(".gz") else open
        with opener(input_path, "rt", encoding="utf-8") as source, \
                open(output_path, "w", encoding="utf-8") as target:
            line_number = 0
            for line in source:
                trimmed = line.strip()
                if not trimmed:
                    continue
                line_number += 1

                record = self._convert_line(trimmed, input_path, line_number)
                if record is None:
                    stats.skipped += 1
                    continue
                target.write(json.dumps(record.to_dict(), ensure_ascii=False, separators=(",", ":")) + "\n")
                stats.written += 1

        self.logger.info(f"Converted {input_path} -> {output_path}: "
                         f"{stats.written} records, {stats.skipped} skipped")
        return stats

    def convert_tree(self, root: str, out_dir: str) -> Dict[str, ConversionStats]:
        """
        Convert every ``pg_<gameId>`` directory below ``root``.

        Returns:
            game id -> conversion stats
        """
        results = {}
        for name in sorted(os.listdir(root)):
            game_dir = os.path.join(root, name)
            if not os.path.isdir(game_dir) or not name.startswith(GAME_DIR_PREFIX):
                continue

            input_path = self.find_dump(game_dir)
            if input_path is None:
                self.logger.warning(f"Skip {name}: no simulate.json[.gz] found")
                continue

            game_id = name[len(GAME_DIR_PREFIX):]
            output_path = os.path.join(out_dir, game_id, spin_file_name(CONVERTED_ROUND_TYPE))
            results[game_id] = self.convert_file(input_path, output_path)
        return results

    @staticmethod
    def find_dump(game_dir: str) -> Optional[str]:
        """Plain dump first, then the gzipped one."""
        for name in DUMP_NAMES:
            path = os.path.join(game_dir, name)
            if os.path.isfile(path):
                return path
        return None

    def _convert_line(self, line: str, input_path: str, line_number: int) -> Optional[SessionRecord]:
        try:
            source = json.loads(line)
        except ValueError as e:
            self.logger.error(f"Failed to parse JSON in {input_path} at line {line_number}: {e}")
            return None

        data = source.get("data") if isinstance(source, dict) else None
        if not isinstance(data, list):
            self.logger.error(f"Record in {input_path} at line {line_number} has no data[] array, skipped")
            return None

        spins = [{"dt": {"si": spin_info}, "err": None} for spin_info in data]
        return SessionRecord(
            content_hash=compute_content_hash(spins),
            round_type=CONVERTED_ROUND_TYPE,
            spins=spins,
        )
