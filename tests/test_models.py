# tests/test_models.py
import unittest

from sqlalchemy.dialects import mysql
from sqlalchemy.schema import CreateTable

from metagdb.models.models import Base


class TestTableOptions(unittest.TestCase):
    def test_every_table_uses_binary_collation(self):
        self.assertEqual(set(Base.metadata.tables), {"change", "sequence", "classification", "taxonomy", "taxclass"})
        for name, table in Base.metadata.tables.items():
            with self.subTest(name):
                self.assertEqual(table.kwargs["mysql_charset"], "utf8mb4")
                self.assertEqual(table.kwargs["mysql_collate"], "utf8mb4_bin")

    def test_mysql_ddl_carries_collation(self):
        ddl = str(CreateTable(Base.metadata.tables["taxonomy"]).compile(dialect=mysql.dialect()))
        self.assertIn("utf8mb4_bin", ddl)
        self.assertIn("uix_taxonomy", ddl)


if __name__ == '__main__':
    unittest.main()
