import unittest
from datetime import datetime

import fakes  # noqa: F401  puts src/ on sys.path

from utils.pure import format_date, format_price, generate_markdown_table


class PureTestCase(unittest.TestCase):
    def test_format_price(self):
        self.assertEqual(format_price(0), "$0")
        self.assertEqual(format_price(29990), "$29.990")
        self.assertEqual(format_price(1234567), "$1.234.567")
        self.assertEqual(format_price(-500), "-$500")

    def test_format_date(self):
        self.assertEqual(format_date(None), "-")
        self.assertEqual(format_date(datetime(2025, 11, 2, 14, 30)), "02-11-2025 14:30")

    def test_markdown_table(self):
        md = generate_markdown_table(["A", "B"], [[1, "x|y"]], ["l", "r"])
        self.assertEqual(md, "| A | B |\n| :--- | ---: |\n| 1 | x\\|y |")

    def test_markdown_table_first_row_as_header(self):
        md = generate_markdown_table(None, [["k", "v"], ["a", "b"]])
        self.assertTrue(md.startswith("| k | v |"))

    def test_markdown_table_edge_cases(self):
        self.assertEqual(generate_markdown_table(["A"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["A", "B"], [[1, 2]], ["l"])


if __name__ == "__main__":
    unittest.main()
