"""Tests for the two-tier stock ledger: purchases, allocations and flags."""

import pytest
from decimal import Decimal

from momo_pos.core.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from momo_pos.models.inventory import CentralMaterial, MaterialCategory
from momo_pos.models.ledger import StockAllocation
from momo_pos.services.stock_ledger import (
    BRANCH,
    CENTRAL,
    STANDARD_MATERIALS,
    StockLedger,
    slugify_material_id,
)

STATION = "Koramangala"


# ============== Hub ==============

class TestCentralItems:

    def test_slugify(self):
        assert slugify_material_id("Refined Cooking Oil") == "refined-cooking-oil"
        assert slugify_material_id("  Chilli & Garlic  ") == "chilli--garlic"

    def test_create_derives_id_from_name(self, db_session):
        row = StockLedger(db_session).create_central_item(
            "Green Chutney", "kg", Decimal("5"), Decimal("120"), MaterialCategory.INGREDIENT,
        )
        assert row.id == "green-chutney"
        assert row.current_stock == Decimal("5")
        assert row.last_purchase_cost == Decimal("120")
        assert row.version == 1

    def test_create_with_existing_id_overwrites(self, momo_setup):
        ledger = StockLedger(momo_setup["db"])
        row = ledger.create_central_item(
            "Mayo Tub", "tub", Decimal("3"), Decimal("90"), MaterialCategory.PACKET, manual_id="pkt-mayo",
        )
        assert row.name == "Mayo Tub"
        assert row.current_stock == Decimal("3")
        assert row.version == 2

    def test_create_requires_name(self, db_session):
        with pytest.raises(ValidationError):
            StockLedger(db_session).create_central_item(" ", "kg", 1, 1, MaterialCategory.PACKET)

    def test_seed_only_adds_missing(self, momo_setup):
        ledger = StockLedger(momo_setup["db"])
        created = ledger.seed_standard_inventory()

        assert "momo-chicken" not in created
        assert len(created) == len(STANDARD_MATERIALS) - 3
        assert ledger.get_central("momo-chicken").current_stock == Decimal("500")
        assert ledger.seed_standard_inventory() == []


class TestPurchase:

    def test_purchase_increments_and_clears_finished(self, momo_setup):
        ledger = StockLedger(momo_setup["db"])
        ledger.mark_finished(CENTRAL, "pkt-mayo", True)

        row = ledger.purchase("pkt-mayo", Decimal("12"), Decimal("600"))

        assert row.current_stock == Decimal("12")
        assert row.is_finished is False
        assert row.last_purchase_cost == Decimal("600")
        assert row.last_purchase_date is not None

    def test_purchase_unknown_material(self, db_session):
        with pytest.raises(NotFoundError):
            StockLedger(db_session).purchase("ghost", 1, 1)

    @pytest.mark.parametrize("qty,cost", [(0, 10), (-1, 10), (1, -5)])
    def test_purchase_rejects_bad_input(self, momo_setup, qty, cost):
        ledger = StockLedger(momo_setup["db"])
        with pytest.raises(ValidationError):
            ledger.purchase("pkt-mayo", qty, cost)
        assert ledger.get_central("pkt-mayo").current_stock == Decimal("10")


# ============== Allocation ==============

class TestAllocate:

    def test_allocate_moves_stock_and_logs(self, momo_setup):
        db = momo_setup["db"]
        ledger = StockLedger(db)

        allocation = ledger.allocate("momo-chicken", STATION, Decimal("120"))

        assert allocation.quantity == Decimal("120")
        assert allocation.station_name == STATION
        assert allocation.material_name == "Chicken Momo (Bulk)"
        assert ledger.get_central("momo-chicken").current_stock == Decimal("380")
        assert ledger.get_branch("momo-chicken", STATION).current_stock == Decimal("120")
        assert db.query(StockAllocation).count() == 1

    def test_allocate_adds_to_existing_branch_row(self, momo_setup):
        ledger = StockLedger(momo_setup["db"])
        ledger.allocate("momo-chicken", STATION, Decimal("50"))
        ledger.allocate("momo-chicken", STATION, Decimal("30"))
        assert ledger.get_branch("momo-chicken", STATION).current_stock == Decimal("80")

    def test_allocate_clears_branch_flags(self, momo_setup):
        ledger = StockLedger(momo_setup["db"])
        ledger.allocate("pkt-fries", STATION, Decimal("1"))
        ledger.mark_finished(BRANCH, "pkt-fries", True, STATION)
        ledger.request_restock("pkt-fries", STATION)

        ledger.allocate("pkt-fries", STATION, Decimal("4"))

        row = ledger.get_branch("pkt-fries", STATION)
        assert row.current_stock == Decimal("4")
        assert row.is_finished is False
        assert row.request_pending is False

    def test_insufficient_stock_has_no_effect(self, momo_setup):
        db = momo_setup["db"]
        ledger = StockLedger(db)

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.allocate("pkt-mayo", STATION, Decimal("11"))

        assert exc_info.value.available == Decimal("10")
        assert ledger.get_central("pkt-mayo").current_stock == Decimal("10")
        assert ledger.get_branch("pkt-mayo", STATION) is None
        assert db.query(StockAllocation).count() == 0

    def test_allocate_unknown_material(self, db_session):
        with pytest.raises(NotFoundError):
            StockLedger(db_session).allocate("ghost", STATION, 1)

    def test_allocate_exact_balance(self, momo_setup):
        ledger = StockLedger(momo_setup["db"])
        ledger.allocate("pkt-mayo", STATION, Decimal("10"))
        assert ledger.get_central("pkt-mayo").current_stock == Decimal("0")


# ============== Flags ==============

class TestFlags:

    def test_mark_central_finished_and_back(self, momo_setup):
        ledger = StockLedger(momo_setup["db"])

        row = ledger.mark_finished(CENTRAL, "momo-chicken", True)
        assert row.is_finished is True
        assert row.current_stock == Decimal("0")

        row = ledger.mark_finished(CENTRAL, "momo-chicken", False)
        assert row.is_finished is False
        assert row.current_stock == Decimal("1")

    def test_mark_branch_requires_branch_name(self, momo_setup):
        with pytest.raises(ValidationError):
            StockLedger(momo_setup["db"]).mark_finished(BRANCH, "momo-chicken", True)

    def test_unknown_scope(self, momo_setup):
        with pytest.raises(ValidationError):
            StockLedger(momo_setup["db"]).mark_finished("warehouse", "momo-chicken", True)

    def test_restock_request_stays_until_cleared(self, momo_setup):
        ledger = StockLedger(momo_setup["db"])
        ledger.allocate("pkt-mayo", STATION, Decimal("2"))

        assert ledger.request_restock("pkt-mayo", STATION).request_pending is True
        ledger.purchase("pkt-mayo", Decimal("5"), Decimal("100"))
        assert ledger.get_branch("pkt-mayo", STATION).request_pending is True

        assert ledger.clear_restock_request("pkt-mayo", STATION).request_pending is False

    def test_restock_request_unknown_branch_row(self, momo_setup):
        with pytest.raises(NotFoundError):
            StockLedger(momo_setup["db"]).request_restock("pkt-mayo", STATION)


# ============== Optimistic concurrency ==============

class TestCompareAndSwap:

    def test_stale_version_is_rejected(self, momo_setup):
        db = momo_setup["db"]
        ledger = StockLedger(db)
        row = ledger.get_central("pkt-mayo")
        stale_version = row.version

        ledger.purchase("pkt-mayo", Decimal("1"), Decimal("10"))
        row.version = stale_version

        assert ledger._compare_and_swap(row, {"current_stock": Decimal("999")}) is False
        db.rollback()
        assert ledger.get_central("pkt-mayo").current_stock == Decimal("11")

    def test_every_write_bumps_version(self, momo_setup):
        ledger = StockLedger(momo_setup["db"])
        ledger.purchase("pkt-fries", Decimal("1"), Decimal("10"))
        ledger.allocate("pkt-fries", STATION, Decimal("1"))
        assert ledger.get_central("pkt-fries").version == 3

    def test_retry_gives_up_with_conflict(self, momo_setup, monkeypatch):
        ledger = StockLedger(momo_setup["db"], max_retries=3)
        attempts = []

        def always_lose(row, values):
            attempts.append(row.version)
            return False

        monkeypatch.setattr(ledger, "_compare_and_swap", always_lose)

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            ledger.purchase("pkt-mayo", Decimal("1"), Decimal("10"))

        assert exc_info.value.attempts == 3
        assert len(attempts) == 3

    def test_single_attempt_is_honoured(self, momo_setup, monkeypatch):
        ledger = StockLedger(momo_setup["db"], max_retries=1)
        attempts = []

        def always_lose(row, values):
            attempts.append(row.version)
            return False

        monkeypatch.setattr(ledger, "_compare_and_swap", always_lose)

        with pytest.raises(ConcurrencyConflictError):
            ledger.purchase("pkt-mayo", Decimal("1"), Decimal("10"))
        assert len(attempts) == 1

    def test_zero_attempts_rejected(self, momo_setup):
        with pytest.raises(ValueError):
            StockLedger(momo_setup["db"], max_retries=0)

    def test_retry_succeeds_after_one_conflict(self, momo_setup, monkeypatch):
        db = momo_setup["db"]
        ledger = StockLedger(db)
        real_cas = ledger._compare_and_swap
        calls = []

        def lose_once(row, values):
            calls.append(1)
            if len(calls) == 1:
                return False
            return real_cas(row, values)

        monkeypatch.setattr(ledger, "_compare_and_swap", lose_once)

        row = ledger.purchase("pkt-mayo", Decimal("2"), Decimal("10"))

        assert len(calls) == 2
        assert row.current_stock == Decimal("12")
        assert isinstance(db.get(CentralMaterial, "pkt-mayo"), CentralMaterial)
