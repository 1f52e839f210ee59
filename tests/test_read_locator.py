# tests/test_read_locator.py
import tempfile
import unittest
from pathlib import Path

from metagdb.exceptions import ConfigurationError, ParseError
from metagdb.models.records import SampleMeta, UNMATCHED_TAXON
from metagdb.processing.read_locator import ReadLocator, group_patterns
from metagdb.utils.diagnostics import Diagnostics

from support import gzip_bytes, make_config, metag_record, write


def sample(id_sample, pattern, is_control=False, program="MetaG", database="db1"):
    return SampleMeta(id_sample, pattern, is_control, program, database)


class TestGroupPatterns(unittest.TestCase):
    def test_control_pattern_substitution(self):
        patterns = group_patterns({1: sample(1, "run1_bar01"), 2: sample(2, "run1_bar02", is_control=True)})
        self.assertEqual(set(patterns), {"run1_bar01", "run1_bar99"})

    def test_duplicate_case_pattern(self):
        with self.assertRaisesRegex(ConfigurationError, "Multiple samples share the same directory pattern"):
            group_patterns({1: sample(1, "run1_bar01"), 2: sample(2, "run1_bar01")})

    def test_case_and_control_on_same_pattern(self):
        with self.assertRaises(ConfigurationError):
            group_patterns({1: sample(1, "run1_bar99"), 2: sample(2, "run1_bar05", is_control=True)})

    def test_controls_are_pooled(self):
        patterns = group_patterns({
            1: sample(1, "run1_bar01", is_control=True),
            2: sample(2, "run1_bar02", is_control=True),
        })
        self.assertEqual([meta.id_sample for meta in patterns["run1_bar99"]], [1, 2])

    def test_samples_without_pattern_skipped(self):
        self.assertEqual(group_patterns({1: sample(1, None)}), {})


class TestReadLocator(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.base = Path(self.tmp.name)
        self.diagnostics = Diagnostics()
        self.locator = ReadLocator(self.base, make_config(), self.diagnostics)

    def tearDown(self):
        self.tmp.cleanup()

    def test_locate_parses_archived_files(self):
        write(self.base / "run1_bar01" / "part1_calc.LIN.txt.gz",
              gzip_bytes(metag_record("r1", [("domain", "Bacteria")])))
        write(self.base / "run1_bar01" / "part2_calc.LIN.txt", "No match for r2\n")

        located = self.locator.locate({"run1_bar01": [sample(1, "run1_bar01")]})
        lineages = located["run1_bar01"][1]
        self.assertEqual(set(lineages), {"r1", "r2"})
        self.assertEqual(lineages["r1"]["domain"].name, "Bacteria")
        self.assertEqual(lineages["r2"]["strain"], UNMATCHED_TAXON)
        self.assertEqual(len(self.diagnostics), 0)

    def test_missing_files_recorded_as_warning(self):
        located = self.locator.locate({"run1_bar01": [sample(1, "run1_bar01")]})
        self.assertEqual(located, {"run1_bar01": {1: {}}})
        self.assertEqual(len(self.diagnostics.warnings), 1)
        self.assertIn("No classification files", self.diagnostics.messages()[0])

    def test_empty_file_treated_as_missing(self):
        write(self.base / "run1_bar01" / "a_calc.LIN.txt.gz", gzip_bytes("  \n\n"))
        located = self.locator.locate({"run1_bar01": [sample(1, "run1_bar01")]})
        self.assertEqual(located["run1_bar01"][1], {})
        self.assertIn("empty", self.diagnostics.messages()[0])

    def test_malformed_file_is_fatal(self):
        write(self.base / "run1_bar01" / "a_calc.LIN.txt", "domain: A: 1\n")
        with self.assertRaises(ParseError):
            self.locator.locate({"run1_bar01": [sample(1, "run1_bar01")]})

    def test_kraken2_files(self):
        write(self.base / "run1_bar01" / "a.kraken2.txt", "C\tr1\t2\t1\td__Bacteria\n")
        located = self.locator.locate({"run1_bar01": [sample(1, "run1_bar01", program="Kraken2")]})
        self.assertEqual(located["run1_bar01"][1]["r1"]["domain"].name, "Bacteria")

    def test_pooled_controls_share_lineages(self):
        write(self.base / "run1_bar99" / "a_calc.LIN.txt", "No match for r1\n")
        located = self.locator.locate({"run1_bar99": [
            sample(1, "run1_bar01", is_control=True), sample(2, "run1_bar02", is_control=True),
        ]})
        self.assertEqual(set(located["run1_bar99"]), {1, 2})
        self.assertEqual(located["run1_bar99"][1], located["run1_bar99"][2])


class TestResolveClassifier(unittest.TestCase):
    def setUp(self):
        self.locator = ReadLocator("/nonexistent", make_config(), Diagnostics())

    def test_program_match_is_case_insensitive(self):
        classifier = self.locator.resolve_classifier("p", [sample(1, "p", program="MetaG v1.2")])
        self.assertEqual(classifier.file_format, "metag")
        self.assertEqual(classifier.program, "MetaG v1.2")

    def test_missing_program(self):
        with self.assertRaisesRegex(ConfigurationError, "Mandatory value for program name not found"):
            self.locator.resolve_classifier("p", [sample(1, "p", program=None)])

    def test_missing_database(self):
        with self.assertRaisesRegex(ConfigurationError, "Mandatory value for database name not found"):
            self.locator.resolve_classifier("p", [sample(1, "p", database=None)])

    def test_unknown_classifier(self):
        with self.assertRaisesRegex(ConfigurationError, "Unknown classifier"):
            self.locator.resolve_classifier("p", [sample(1, "p", program="blast")])

    def test_multiple_classifiers(self):
        with self.assertRaisesRegex(ConfigurationError, "Multiple classifiers"):
            self.locator.resolve_classifier("p", [
                sample(1, "p", is_control=True, program="MetaG"),
                sample(2, "p", is_control=True, program="Kraken2"),
            ])


if __name__ == '__main__':
    unittest.main()
