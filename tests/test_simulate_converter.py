# tests/test_simulate_converter.py
import unittest
import gzip
import json
import logging
import sys
import os
import shutil
import tempfile

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from spin_harvester.application.conversion.simulate_converter import SimulateDumpConverter
from spin_harvester.application.validation.archive_validator import ArchiveValidator

from spin_fixtures import make_bonus_round, read_lines


def dump_line(responses) -> str:
    return json.dumps({"data": [r["dt"]["si"] for r in responses]})


class TestSimulateDumpConverter(unittest.TestCase):
    """Test conversion of simulation dumps into archive files."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.temp_dir = tempfile.mkdtemp()
        self.converter = SimulateDumpConverter()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        logging.disable(logging.NOTSET)

    def write_dump(self, game_dir, lines, gz=False) -> str:
        directory = os.path.join(self.temp_dir, "dumps", game_dir)
        os.makedirs(directory, exist_ok=True)
        if gz:
            path = os.path.join(directory, "simulate.json.gz")
            with gzip.open(path, "wt", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
        else:
            path = os.path.join(directory, "simulate.json")
            with open(path, "w", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
        return path

    def test_convert_file_wraps_spins(self):
        source = self.write_dump("pg_126", [dump_line(make_bonus_round()), "", "{bad json", json.dumps({"x": 1})])
        output = os.path.join(self.temp_dir, "out", "Spin.1.jsonl")

        stats = self.converter.convert_file(source, output)

        self.assertEqual((stats.written, stats.skipped), (1, 2))
        record = json.loads(read_lines(output)[0])
        self.assertEqual(record["roundType"], 1)
        self.assertEqual(len(record["contentHash"]), 32)
        self.assertEqual(record["spins"][0]["err"], None)
        self.assertEqual(record["spins"][0]["dt"]["si"]["st"], 1)

    def test_convert_tree(self):
        self.write_dump("pg_126", [dump_line(make_bonus_round(psid="1"))], gz=True)
        self.write_dump("pg_98", [dump_line(make_bonus_round(psid="2")), dump_line(make_bonus_round(psid="3", free_spins=2))])
        os.makedirs(os.path.join(self.temp_dir, "dumps", "pg_5"))
        os.makedirs(os.path.join(self.temp_dir, "dumps", "other"))
        out_dir = os.path.join(self.temp_dir, "archive")

        results = self.converter.convert_tree(os.path.join(self.temp_dir, "dumps"), out_dir)

        self.assertEqual(sorted(results), ["126", "98"])
        self.assertEqual(results["98"].written, 2)
        self.assertEqual(len(read_lines(os.path.join(out_dir, "126", "Spin.1.jsonl"))), 1)

        report = ArchiveValidator(verbose=True).validate_archive(out_dir)
        self.assertEqual(report.violations, [])
        self.assertEqual(report.records, 3)

    def test_plain_dump_preferred(self):
        self.write_dump("pg_126", [dump_line(make_bonus_round())], gz=True)
        plain = self.write_dump("pg_126", [dump_line(make_bonus_round())])

        self.assertEqual(self.converter.find_dump(os.path.dirname(plain)), plain)


if __name__ == "__main__":
    unittest.main()
