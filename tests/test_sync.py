"""Tests for the sync diff engine."""

from __future__ import annotations

import pytest

from gristapi.exceptions import PreconditionError
from gristapi.sync import (
    SyncPlan,
    cell_equal,
    cell_key,
    changed_columns,
    check_filter_columns,
    filter_matches,
    make_key,
    plan_sync,
)

PANTRY = [
    {"id": 1, "Name": "eggs", "Kind": "dairy", "Qty": 12},
    {"id": 2, "Name": "milk", "Kind": "dairy", "Qty": 1},
    {"id": 3, "Name": "rice", "Kind": "grain", "Qty": 3},
]


class TestCellComparison:
    """Tests for cell_key() and cell_equal()."""

    def test_number_and_text_differ(self) -> None:
        assert cell_key(1) != cell_key("1")
        assert not cell_equal(1, "1")

    def test_bool_and_number_differ(self) -> None:
        assert cell_key(True) != cell_key(1)
        assert not cell_equal(True, 1)
        assert not cell_equal(0, False)

    def test_int_and_float_are_one_number(self) -> None:
        assert cell_key(1) == cell_key(1.0)
        assert cell_equal(1, 1.0)

    def test_none(self) -> None:
        assert cell_equal(None, None)
        assert not cell_equal(None, 0)
        assert not cell_equal("", None)

    def test_compound_values_never_equal(self) -> None:
        """Compound values are treated as always different."""
        assert not cell_equal(["d", 1234567], ["d", 1234567])
        assert not cell_equal(["L", 1], None)

    def test_compound_key_is_hashable(self) -> None:
        key = cell_key(["L", 1, 2])

        assert key == cell_key(["L", 1, 2])
        assert hash(key) == hash(cell_key(["L", 1, 2]))


class TestMakeKey:
    """Tests for make_key()."""

    def test_projects_in_key_order(self) -> None:
        rec = {"A": 1, "B": "x", "C": True}

        assert make_key(rec, ["B", "A"]) == (("text", "x"), ("number", 1))

    def test_missing_column_same_as_none(self) -> None:
        assert make_key({"A": 1}, ["A", "B"]) == make_key({"A": 1, "B": None}, ["A", "B"])


class TestFilterMatches:
    """Tests for filter_matches()."""

    def test_match(self) -> None:
        assert filter_matches({"Kind": "dairy", "Qty": 1}, {"Kind": ["dairy", "grain"]})

    def test_no_match(self) -> None:
        assert not filter_matches({"Kind": "fruit"}, {"Kind": ["dairy"]})

    def test_all_columns_must_match(self) -> None:
        rec = {"Kind": "dairy", "Store": "B"}

        assert not filter_matches(rec, {"Kind": ["dairy"], "Store": ["A"]})

    def test_missing_column_fails(self) -> None:
        """A record lacking a filter column never matches, even a None option."""
        assert not filter_matches({"Name": "eggs"}, {"Kind": ["dairy", None]})

    def test_type_strict(self) -> None:
        assert not filter_matches({"Num": "1"}, {"Num": [1]})
        assert not filter_matches({"Flag": 1}, {"Flag": [True]})

    def test_none_value_matches_none_option(self) -> None:
        assert filter_matches({"Kind": None}, {"Kind": [None]})


class TestChangedColumns:
    """Tests for changed_columns()."""

    def test_only_differing_columns(self) -> None:
        old = {"id": 1, "Name": "eggs", "Qty": 12, "Kind": "dairy"}

        assert changed_columns({"Name": "eggs", "Qty": 0}, old) == ["Qty"]

    def test_column_missing_from_old(self) -> None:
        assert changed_columns({"Name": "eggs", "Note": None}, {"id": 1, "Name": "eggs"}) == [
            "Note"
        ]


class TestCheckFilterColumns:
    """Tests for check_filter_columns()."""

    def test_subset_ok(self) -> None:
        check_filter_columns(["Kind", "Name"], {"Kind": ["dairy"]})

    def test_no_filters_ok(self) -> None:
        check_filter_columns(["Name"], None)
        check_filter_columns(["Name"], {})

    def test_not_subset(self) -> None:
        with pytest.raises(PreconditionError, match="superset of filter columns"):
            check_filter_columns(["Name"], {"Kind": ["dairy"]})


class TestPlanSync:
    """Tests for plan_sync()."""

    def test_eggs_example(self) -> None:
        """Changing one value stages exactly that column plus id."""
        plan = plan_sync(PANTRY, [{"Name": "eggs", "Qty": 0}], ["Name"])

        assert plan.updates == [{"Qty": 0, "id": 1}]
        assert plan.additions == []

    def test_no_changes(self) -> None:
        """Records equal to existing rows stage nothing."""
        records = [{"Name": "eggs", "Qty": 12}, {"Name": "rice", "Kind": "grain"}]

        plan = plan_sync(PANTRY, records, ["Name"])

        assert not plan.has_changes
        assert plan.data_count == 2

    def test_new_record_added_whole(self) -> None:
        new = {"Name": "tea", "Kind": "drink", "Qty": 4}

        plan = plan_sync(PANTRY, [new], ["Name"])

        assert plan.additions == [new]
        assert plan.updates == []

    def test_update_with_multiple_changes(self) -> None:
        plan = plan_sync(PANTRY, [{"Name": "milk", "Kind": "drink", "Qty": 2}], ["Name"])

        assert plan.updates == [{"Kind": "drink", "Qty": 2, "id": 2}]

    def test_composite_key(self) -> None:
        """All key columns must match for a row to be updated."""
        records = [
            {"Name": "eggs", "Kind": "dairy", "Qty": 6},
            {"Name": "eggs", "Kind": "protein", "Qty": 6},
        ]

        plan = plan_sync(PANTRY, records, ["Name", "Kind"])

        assert plan.updates == [{"Qty": 6, "id": 1}]
        assert plan.additions == [records[1]]

    def test_key_types_do_not_collide(self) -> None:
        """A text key never matches a numeric one."""
        existing = [{"id": 1, "Code": 1, "Label": "one"}]

        plan = plan_sync(existing, [{"Code": "1", "Label": "one"}], ["Code"])

        assert plan.updates == []
        assert plan.additions == [{"Code": "1", "Label": "one"}]

    def test_order_preserved(self) -> None:
        records = [
            {"Name": "tea", "Qty": 1},
            {"Name": "rice", "Qty": 9},
            {"Name": "jam", "Qty": 2},
            {"Name": "eggs", "Qty": 1},
        ]

        plan = plan_sync(PANTRY, records, ["Name"])

        assert [u["id"] for u in plan.updates] == [3, 1]
        assert [a["Name"] for a in plan.additions] == ["tea", "jam"]

    def test_compound_values_always_update(self) -> None:
        """Compound values count as changed even when equal."""
        existing = [{"id": 1, "Name": "eggs", "Bought": ["d", 1234567]}]

        plan = plan_sync(existing, [{"Name": "eggs", "Bought": ["d", 1234567]}], ["Name"])

        assert plan.updates == [{"Bought": ["d", 1234567], "id": 1}]

    def test_duplicate_existing_keys_last_wins(self) -> None:
        existing = [
            {"id": 1, "Name": "eggs", "Qty": 1},
            {"id": 2, "Name": "eggs", "Qty": 2},
        ]

        plan = plan_sync(existing, [{"Name": "eggs", "Qty": 5}], ["Name"])

        assert plan.existing_count == 1
        assert plan.updates == [{"Qty": 5, "id": 2}]

    def test_filtered_out_records_skipped(self) -> None:
        """Records outside the filter are neither updated nor added."""
        dairy = [r for r in PANTRY if r["Kind"] == "dairy"]
        records = [
            {"Name": "eggs", "Kind": "dairy", "Qty": 0},
            {"Name": "rice", "Kind": "grain", "Qty": 100},
            {"Name": "oats", "Kind": "grain", "Qty": 1},
            {"Name": "cream", "Kind": "dairy", "Qty": 1},
        ]

        plan = plan_sync(dairy, records, ["Name", "Kind"], {"Kind": ["dairy"]})

        assert plan.filtered_out == 2
        assert plan.data_count == 2
        assert plan.updates == [{"Qty": 0, "id": 1}]
        assert plan.additions == [records[3]]

    def test_record_missing_filter_column_is_filtered_out(self) -> None:
        plan = plan_sync([], [{"Name": "eggs"}], ["Name", "Kind"], {"Kind": ["dairy"]})

        assert plan.filtered_out == 1
        assert not plan.has_changes

    def test_filter_not_subset_of_keys(self) -> None:
        with pytest.raises(PreconditionError):
            plan_sync(PANTRY, [], ["Name"], {"Kind": ["dairy"]})

    def test_idempotent_after_apply(self) -> None:
        """Applying a plan and planning again stages nothing."""
        records = [
            {"Name": "eggs", "Qty": 0},
            {"Name": "tea", "Kind": "drink", "Qty": 4},
        ]
        first = plan_sync(PANTRY, records, ["Name"])

        table = {row["id"]: dict(row) for row in PANTRY}
        for update in first.updates:
            table[update["id"]].update(update)
        for i, rec in enumerate(first.additions):
            table[100 + i] = {"id": 100 + i, "Kind": None, "Qty": None, **rec}

        second = plan_sync(list(table.values()), records, ["Name"])

        assert second == SyncPlan(existing_count=4, data_count=2)
