# tests/test_import_service.py
"""端到端导入测试：临时目录 + 内存 SQLite"""
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from metagdb.exceptions import ConfigurationError, ReconciliationError
from metagdb.models.database import get_session
from metagdb.models.models import Change, Classification, Sequence, Taxclass, Taxonomy
from metagdb.models.records import FILTERED, TaxonomyKey
from metagdb.services.import_service import ImportService, run_taxonomy_import
from metagdb.utils.yaml_config import reset_yaml_config

from support import RANKS, TEST_CONFIG, fastq_record, gzip_bytes, make_engine, make_session, metag_record, write

LINEAGES = (
    metag_record("r1", [("domain", "Bacteria"), ("phylum", "Firmicutes")])
    + metag_record("r2", [("domain", "Bacteria"), ("phylum", "unclassified"), ("class", "Bacilli")])
    + "No match for r3\n"
)


def case_sample(pattern="run1_bar01", program="MetaG"):
    return {"number of run and barcode": pattern, "_isControl_": "f", "program": program, "database": "RefSeq"}


class ImportTestCase(unittest.TestCase):
    def setUp(self):
        reset_yaml_config()
        self.tmp = tempfile.TemporaryDirectory()
        self.base = Path(self.tmp.name)
        self.engine = make_engine()
        self.service = ImportService(TEST_CONFIG)

    def tearDown(self):
        self.tmp.cleanup()
        self.engine.dispose()
        reset_yaml_config()

    def write_fastq(self, pattern="run1_bar01", read_ids=("r1", "r2", "r3")):
        write(self.base / pattern / "reads.fastq.gz", gzip_bytes("".join(fastq_record(r) for r in read_ids)))

    def run_import(self, samples, **kwargs):
        with get_session(engine=self.engine) as session:
            return self.service.import_classifications(session, samples, self.base, username="tester", **kwargs)

    def run_entry(self, samples, base=None, **kwargs):
        with patch("metagdb.services.import_service.get_session",
                   side_effect=lambda *args, **kw: get_session(engine=self.engine)):
            return run_taxonomy_import(samples, base or self.base, TEST_CONFIG, username="tester", **kwargs)

    def counts(self):
        return [self.count(model) for model in (Change, Sequence, Taxonomy, Classification, Taxclass)]

    def count(self, model):
        session = make_session(self.engine)
        try:
            return session.query(model).count()
        finally:
            session.close()


class TestImportClassifications(ImportTestCase):
    def test_first_import(self):
        self.write_fastq()
        write(self.base / "run1_bar01" / "reads_calc.LIN.txt", LINEAGES)

        result = self.run_import({1: case_sample()})

        self.assertTrue(result.is_new)
        self.assertEqual(set(result.sequence_keys), {"run1_bar01"})
        self.assertEqual(set(result.sequence_keys["run1_bar01"][1]), {"r1", "r2", "r3"})
        self.assertEqual(self.count(Sequence), 3)
        self.assertEqual(self.count(Taxonomy), 14)
        self.assertEqual(self.count(Classification), 3)
        self.assertEqual(self.count(Taxclass), 30)
        self.assertEqual(result.taxclass_count, 30)
        self.assertEqual(len(result.diagnostics.warnings), 0)

        self.assertIn(TaxonomyKey(None, "phylum"), result.taxonomy_keys)
        self.assertIn(TaxonomyKey("UNMATCHED", "strain"), result.taxonomy_keys)
        link = result.taxonomy_keys[TaxonomyKey("Bacteria", "domain")]
        self.assertEqual(len(link.sequences), 2)
        self.assertEqual({source.program for source in link.sequences.values()}, {"MetaG"})
        for taxonomies in result.classification_keys.values():
            self.assertEqual(len(taxonomies), len(RANKS))

    def test_reimport_is_idempotent(self):
        self.write_fastq()
        write(self.base / "run1_bar01" / "reads_calc.LIN.txt", LINEAGES)

        first = self.run_entry({1: case_sample()})
        counts = self.counts()
        second = self.run_entry({1: case_sample()})

        self.assertFalse(second.is_new)
        self.assertEqual(self.counts(), counts)
        self.assertEqual(second.sequence_keys, first.sequence_keys)
        self.assertEqual(second.classification_keys, first.classification_keys)
        self.assertEqual(
            {key: link.id_taxonomy for key, link in second.taxonomy_keys.items()},
            {key: link.id_taxonomy for key, link in first.taxonomy_keys.items()},
        )
        self.assertEqual(self.count(Change), 1)

    def test_running_flag_is_kept(self):
        self.write_fastq()
        write(self.base / "run1_bar01" / "reads_calc.LIN.txt", LINEAGES)
        self.run_import({1: case_sample()})
        self.assertTrue(self.run_import({1: case_sample()}, is_new=True).is_new)

    def test_missing_classification_files_are_filtered(self):
        self.write_fastq()

        result = self.run_import({1: case_sample()})

        self.assertTrue(result.is_new)
        self.assertEqual(set(result.taxonomy_keys), {TaxonomyKey(FILTERED, rank) for rank in RANKS})
        self.assertEqual(self.count(Taxclass), 30)
        self.assertEqual(len(result.diagnostics.warnings), 1)

        again = self.run_import({1: case_sample()})
        self.assertFalse(again.is_new)

    def test_empty_classification_file_is_filtered(self):
        self.write_fastq()
        write(self.base / "run1_bar01" / "reads_calc.LIN.txt.gz", gzip_bytes(" \n"))
        result = self.run_import({1: case_sample()})
        self.assertEqual(set(result.taxonomy_keys), {TaxonomyKey(FILTERED, rank) for rank in RANKS})

    def test_read_mismatch_rolls_back(self):
        self.write_fastq()
        write(self.base / "run1_bar01" / "reads_calc.LIN.txt", LINEAGES + "No match for r4\n")

        with self.assertRaisesRegex(ReconciliationError, "do not match"):
            self.run_import({1: case_sample()})
        self.assertEqual(self.count(Sequence), 0)
        self.assertEqual(self.count(Change), 0)

    def test_duplicate_case_pattern(self):
        self.write_fastq()
        with self.assertRaisesRegex(ConfigurationError, "Multiple samples share the same directory pattern"):
            self.run_import({1: case_sample(), 2: case_sample()})

    def test_pooled_controls(self):
        self.write_fastq("run1_bar99")
        write(self.base / "run1_bar99" / "reads_calc.LIN.txt", LINEAGES)
        control = {"number of run and barcode": "run1_bar01", "_isControl_": "t",
                   "program": "MetaG", "database": "RefSeq"}
        other = dict(control, **{"number of run and barcode": "run1_bar02"})

        result = self.run_import({1: control, 2: other})

        self.assertEqual(set(result.sequence_keys["run1_bar99"]), {1, 2})
        self.assertEqual(self.count(Sequence), 6)
        self.assertEqual(self.count(Classification), 6)
        self.assertEqual(self.count(Taxclass), 60)

    def test_unknown_classifier(self):
        self.write_fastq()
        with self.assertRaisesRegex(ConfigurationError, "Unknown classifier"):
            self.run_import({1: case_sample(program="blast")})

    def test_kraken2_import(self):
        self.write_fastq(read_ids=("r1", "r2"))
        write(self.base / "run1_bar01" / "out.kraken2",
              "C\tr1\t1279\t2\td__Bacteria;p__Firmicutes\nU\tr2\t0\t0\t\n")

        result = self.run_import({1: case_sample(program="Kraken2")})

        self.assertIn(TaxonomyKey("Firmicutes", "phylum"), result.taxonomy_keys)
        self.assertEqual(self.count(Classification), 2)
        programs = {source.program for link in result.taxonomy_keys.values() for source in link.sequences.values()}
        self.assertEqual(programs, {"Kraken2"})

    def test_given_sequence_keys(self):
        self.write_fastq()
        write(self.base / "run1_bar01" / "reads_calc.LIN.txt", LINEAGES)
        first = self.run_import({1: case_sample()})

        result = self.run_import({1: case_sample()}, sequence_keys=first.sequence_keys)
        self.assertFalse(result.is_new)
        self.assertEqual(result.classification_keys, first.classification_keys)

    def test_no_fastq_files(self):
        result = self.run_import({1: case_sample()})
        self.assertFalse(result.is_new)
        self.assertEqual(result.taxonomy_keys, {})
        self.assertEqual(len(result.diagnostics.warnings), 2)


class TestRunTaxonomyImport(ImportTestCase):
    def test_commits_on_success(self):
        self.write_fastq()
        write(self.base / "run1_bar01" / "reads_calc.LIN.txt", LINEAGES)

        result = self.run_entry({1: case_sample()})

        self.assertTrue(result.is_new)
        self.assertEqual(self.count(Taxclass), 30)
        self.assertEqual(self.count(Change), 1)

    def test_second_run_discards_change(self):
        self.write_fastq()
        write(self.base / "run1_bar01" / "reads_calc.LIN.txt", LINEAGES)

        first = self.run_entry({1: case_sample()})
        counts = self.counts()
        second = self.run_entry({1: case_sample()})

        self.assertEqual(counts, [1, 3, 14, 3, 30])
        self.assertEqual(self.counts(), counts)
        self.assertTrue(first.is_new)
        self.assertFalse(second.is_new)

    def test_new_sample_keeps_change(self):
        self.write_fastq()
        self.write_fastq("run1_bar02")
        write(self.base / "run1_bar01" / "reads_calc.LIN.txt", LINEAGES)
        write(self.base / "run1_bar02" / "reads_calc.LIN.txt", LINEAGES)

        self.run_entry({1: case_sample()})
        result = self.run_entry({1: case_sample(), 2: case_sample("run1_bar02")})

        self.assertTrue(result.is_new)
        self.assertEqual(self.count(Change), 2)
        self.assertEqual(self.count(Sequence), 6)

    def test_no_fastq_files_commits_nothing(self):
        result = self.run_entry({1: case_sample()})
        self.assertFalse(result.is_new)
        self.assertEqual(self.counts(), [0, 0, 0, 0, 0])

    def test_classifier_token_in_base_directory(self):
        base = self.base / "kraken2_results"
        write(base / "run1_bar01" / "reads.fastq.gz", gzip_bytes(fastq_record("r1") + fastq_record("r2")))
        write(base / "run1_bar01" / "reads.kraken2", "C\tr1\t1279\t2\td__Bacteria;p__Firmicutes\nU\tr2\t0\t0\t\n")

        result = self.run_entry({1: case_sample(program="Kraken2")}, base=base)

        self.assertTrue(result.is_new)
        self.assertEqual(set(result.sequence_keys["run1_bar01"][1]), {"r1", "r2"})
        self.assertIn(TaxonomyKey("Firmicutes", "phylum"), result.taxonomy_keys)
        self.assertEqual(self.count(Classification), 2)

    def test_reraises_on_failure(self):
        self.write_fastq()
        with self.assertRaises(ConfigurationError):
            self.run_entry({1: case_sample(program=None)})
        self.assertEqual(self.count(Sequence), 0)


if __name__ == '__main__':
    unittest.main()
