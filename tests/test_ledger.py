import pytest

from domain.ledger import Ledger, sort_newest_first
from domain.records import Transaction


def _t(record_id: str, day: str) -> Transaction:
    return Transaction(id=record_id, date=day, amount=1, type="EXPENSE")


class TestLedger:
    def test_append_and_lookup(self):
        ledger = Ledger()
        ledger.append(_t("a", "2024-01-01"))
        assert "a" in ledger
        assert len(ledger) == 1
        assert ledger.get("a").id == "a"
        assert ledger.get("missing") is None

    def test_append_rejects_duplicate_id(self):
        ledger = Ledger([_t("a", "2024-01-01")])
        with pytest.raises(ValueError, match="Duplicate transaction id"):
            ledger.append(_t("a", "2024-02-01"))

    def test_remove_existing(self):
        ledger = Ledger([_t("a", "2024-01-01"), _t("b", "2024-01-02")])
        assert ledger.remove("a") is True
        assert [t.id for t in ledger] == ["b"]

    def test_remove_missing_is_noop(self):
        ledger = Ledger([_t("a", "2024-01-01")])
        before = ledger.items()
        assert ledger.remove("zzz") is False
        assert ledger.items() == before

    def test_items_is_a_copy(self):
        ledger = Ledger([_t("a", "2024-01-01")])
        ledger.items().clear()
        assert len(ledger) == 1


def test_sort_newest_first_keeps_arrival_order_for_ties():
    items = [
        _t("first", "2024-05-01"),
        _t("old", "2024-01-01"),
        _t("second", "2024-05-01"),
        _t("new", "2024-06-01"),
        _t("third", "2024-05-01"),
    ]
    ordered = [t.id for t in sort_newest_first(items)]
    assert ordered == ["new", "first", "second", "third", "old"]
