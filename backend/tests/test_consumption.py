"""Tests for recipe-driven stock consumption of saved orders."""

import pytest
from decimal import Decimal

from momo_pos.models.inventory import BranchMaterial
from momo_pos.models.menu import MenuCategory, Size
from momo_pos.models.order import Order, OrderItem, OrderType
from momo_pos.services.consumption_service import OrderConsumptionResolver, line_size
from momo_pos.services.menu_catalog import MenuCatalog, RecipeRequirement
from momo_pos.services.stock_ledger import StockLedger

BRANCH = "Koramangala"


def _order(db, items, branch_name=BRANCH, bill_number=1):
    order = Order(
        bill_number=bill_number,
        type=OrderType.TAKEAWAY,
        total=Decimal("0"),
        branch_name=branch_name,
        items=items,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def _line(menu_item_id, name, quantity, size=None, parent_item_id=None):
    return OrderItem(
        menu_item_id=menu_item_id,
        name=name,
        size=size,
        price=Decimal("0"),
        cost=Decimal("0"),
        quantity=quantity,
        parent_item_id=parent_item_id,
    )


def _branch_stock(db, material_id, branch_name=BRANCH):
    row = StockLedger(db).get_branch(material_id, branch_name)
    return row.current_stock if row else None


# ============== Line size ==============

class TestLineSize:

    def test_stored_size_wins_over_name(self):
        item = _line("chicken-momo", "Chicken Momo (Large)", 1, size=Size.SMALL)
        assert line_size(item) == Size.SMALL

    def test_legacy_line_parses_name(self):
        assert line_size(_line("chicken-momo", "Chicken Momo (Large)", 1)) == Size.LARGE
        assert line_size(_line("chicken-momo", "Chicken Momo", 1)) == Size.MEDIUM


# ============== Deduction ==============

class TestApplyConsumption:

    def test_momo_medium_scales_by_piece_count(self, momo_setup):
        db = momo_setup["db"]
        order = _order(db, [_line("chicken-momo", "Steamed Chicken Momo (Medium)", 2, Size.MEDIUM)])

        report = OrderConsumptionResolver(db).apply_consumption(order)

        assert report.success
        assert len(report.deductions) == 1
        assert report.deductions[0].quantity == Decimal("12")
        assert _branch_stock(db, "momo-chicken") == Decimal("-12")

    @pytest.mark.parametrize("size,pieces", [(Size.SMALL, 4), (Size.LARGE, 8)])
    def test_momo_other_sizes(self, momo_setup, size, pieces):
        db = momo_setup["db"]
        order = _order(db, [_line("chicken-momo", "Chicken Momo", 3, size)])
        OrderConsumptionResolver(db).apply_consumption(order)
        assert _branch_stock(db, "momo-chicken") == Decimal(-pieces * 3)

    def test_combo_size_recipe_has_no_multiplier(self, momo_setup):
        db = momo_setup["db"]
        order = _order(db, [_line("fries-combo", "Fries Combo (Large)", 3, Size.LARGE)])

        OrderConsumptionResolver(db).apply_consumption(order)

        assert _branch_stock(db, "pkt-fries") == Decimal("-1.5")

    def test_deducts_from_existing_branch_row(self, momo_setup):
        db = momo_setup["db"]
        StockLedger(db).allocate("momo-chicken", BRANCH, Decimal("100"))
        order = _order(db, [_line("chicken-momo", "Chicken Momo", 1, Size.SMALL)])

        report = OrderConsumptionResolver(db).apply_consumption(order)

        assert report.deductions[0].created_row is False
        assert _branch_stock(db, "momo-chicken") == Decimal("96")

    def test_provisions_branch_row_from_hub_metadata(self, momo_setup):
        db = momo_setup["db"]
        order = _order(db, [_line("chicken-momo", "Chicken Momo", 1, Size.MEDIUM)])

        report = OrderConsumptionResolver(db).apply_consumption(order)

        row = db.get(BranchMaterial, ("momo-chicken", BRANCH))
        assert report.deductions[0].created_row is True
        assert row.name == "Chicken Momo (Bulk)"
        assert row.unit == "pcs"
        assert row.is_finished is False
        assert row.request_pending is False
        # Hub stock is untouched by sales
        assert StockLedger(db).get_central("momo-chicken").current_stock == Decimal("500")

    def test_add_on_lines_are_consumed(self, momo_setup):
        db = momo_setup["db"]
        order = _order(db, [
            _line("fries-combo", "Fries Combo", 1, Size.MEDIUM),
            _line("fries-combo", "Fries Combo", 2, Size.MEDIUM, parent_item_id="line-1"),
        ])

        OrderConsumptionResolver(db).apply_consumption(order)

        assert _branch_stock(db, "pkt-fries") == Decimal("-0.75")

    def test_double_apply_double_deducts(self, momo_setup):
        db = momo_setup["db"]
        order = _order(db, [_line("chicken-momo", "Chicken Momo", 1, Size.SMALL)])
        resolver = OrderConsumptionResolver(db)

        resolver.apply_consumption(order)
        resolver.apply_consumption(order)

        assert _branch_stock(db, "momo-chicken") == Decimal("-8")

    def test_fractional_recipe_is_not_rounded_away(self, momo_setup):
        db = momo_setup["db"]
        MenuCatalog(db).upsert_item(
            "mayo-dip", "Mayo Dip", MenuCategory.SIDE,
            preparations={"normal": {"medium": 10}},
            costs={"normal": {"medium": 2}},
            recipe=[RecipeRequirement("pkt-mayo", Decimal("0.0125"))],
            size_recipes={},
        )
        StockLedger(db).allocate("pkt-mayo", BRANCH, Decimal("1"))
        resolver = OrderConsumptionResolver(db)

        for bill_number in range(1, 9):
            order = _order(db, [_line("mayo-dip", "Mayo Dip", 1, Size.MEDIUM)], bill_number=bill_number)
            report = resolver.apply_consumption(order)
            assert report.deductions[0].quantity == Decimal("0.0125")

        assert _branch_stock(db, "pkt-mayo") == Decimal("0.9")


# ============== Skips ==============

class TestSkips:

    def test_unknown_menu_item_is_skipped(self, momo_setup):
        db = momo_setup["db"]
        order = _order(db, [
            _line("discontinued", "Old Special", 1, Size.MEDIUM),
            _line("chicken-momo", "Chicken Momo", 1, Size.MEDIUM),
        ])

        report = OrderConsumptionResolver(db).apply_consumption(order)

        assert report.success
        assert report.skipped_items[0]["reason"] == "menu_item_not_found"
        assert _branch_stock(db, "momo-chicken") == Decimal("-6")

    def test_untracked_material_is_reported_not_written(self, momo_setup, caplog):
        db = momo_setup["db"]
        order = _order(db, [_line("cola", "Cola", 2, Size.MEDIUM)])

        report = OrderConsumptionResolver(db).apply_consumption(order)

        assert report.success
        assert report.deductions == []
        assert report.untracked_materials[0]["material_id"] == "drink-cola"
        assert report.untracked_materials[0]["quantity"] == Decimal("2")
        assert db.get(BranchMaterial, ("drink-cola", BRANCH)) is None
        assert "untracked_material" in caplog.text
