import unittest
from datetime import date

from cestas.constants import FamilyStatus, StatusFilter
from cestas.db import FamilyRecord
from cestas.eligibility import (
    compute_block_until,
    filter_families,
    is_valid_block_period,
    parse_other_items,
)


def _family(family_id, name, phone, status=FamilyStatus.ACTIVE):
    return FamilyRecord(
        family_id=family_id,
        name=name,
        address="Rua A",
        phone=phone,
        members=3,
        income=1000.0,
        status=status,
        blocked_until=date(2024, 3, 1) if status == FamilyStatus.BLOCKED else None,
    )


class FilterFamiliesTests(unittest.TestCase):
    def setUp(self):
        self.families = [
            _family("1", "Família Santos", "(11) 98765-4321"),
            _family("2", "Família Rodrigues", "(11) 98765-4322"),
            _family("3", "Família Ferreira", "(11) 98765-4323", FamilyStatus.BLOCKED),
        ]

    def _ids(self, families):
        return [f.family_id for f in families]

    def test_no_filter_returns_everything_in_order(self):
        self.assertEqual(self._ids(filter_families(self.families)), ["1", "2", "3"])

    def test_status_filter(self):
        self.assertEqual(
            self._ids(filter_families(self.families, StatusFilter.ACTIVE)), ["1", "2"]
        )
        self.assertEqual(self._ids(filter_families(self.families, "blocked")), ["3"])

    def test_search_name_is_case_insensitive(self):
        self.assertEqual(
            self._ids(filter_families(self.families, search="SANTOS")), ["1"]
        )

    def test_search_matches_phone_substring(self):
        self.assertEqual(self._ids(filter_families(self.families, search="4322")), ["2"])

    def test_status_and_search_combine(self):
        result = filter_families(self.families, StatusFilter.ACTIVE, "Ferreira")
        self.assertEqual(result, [])

    def test_empty_search_matches_everything(self):
        self.assertEqual(len(filter_families(self.families, search="")), 3)
        self.assertEqual(len(filter_families(self.families, search=None)), 3)

    def test_search_term_is_not_trimmed(self):
        families = [
            _family("1", "Família Santos", "(11) 98765-4321"),
            _family("2", "Ana", "11987654322"),
        ]
        self.assertEqual(self._ids(filter_families(families, search="santos ")), [])
        self.assertEqual(self._ids(filter_families(families, search=" ")), ["1"])

    def test_unknown_status_raises(self):
        with self.assertRaises(ValueError):
            filter_families(self.families, "archived")


class ParseOtherItemsTests(unittest.TestCase):
    def test_splits_and_trims(self):
        self.assertEqual(
            parse_other_items(" Leite (2L) , Arroz (5kg),Feijão "),
            ["Leite (2L)", "Arroz (5kg)", "Feijão"],
        )

    def test_blank_input(self):
        self.assertEqual(parse_other_items(None), [])
        self.assertEqual(parse_other_items(""), [])
        self.assertEqual(parse_other_items("   "), [])

    def test_drops_empty_entries(self):
        self.assertEqual(parse_other_items("Leite,, ,Arroz"), ["Leite", "Arroz"])


class BlockPeriodTests(unittest.TestCase):
    def test_block_until_crosses_month_end(self):
        self.assertEqual(compute_block_until(date(2024, 1, 31), 30), date(2024, 3, 1))

    def test_block_until_crosses_year_end(self):
        self.assertEqual(compute_block_until(date(2023, 12, 15), 90), date(2024, 3, 14))

    def test_valid_periods(self):
        for days in (15, 30, 45, 60, 90):
            self.assertTrue(is_valid_block_period(days))
        for days in (0, 7, 31, 120):
            self.assertFalse(is_valid_block_period(days))


if __name__ == "__main__":
    unittest.main()
