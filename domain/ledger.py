from __future__ import annotations

from collections.abc import Iterable, Iterator

from .records import Transaction


def sort_newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Order by date descending; equal dates keep their arrival order."""
    return sorted(transactions, key=lambda item: item.date, reverse=True)


class Ledger:
    """Ordered collection of transactions supporting append and remove only."""

    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._items: list[Transaction] = []
        for transaction in transactions:
            self.append(transaction)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, transaction_id: object) -> bool:
        return any(item.id == transaction_id for item in self._items)

    def get(self, transaction_id: str) -> Transaction | None:
        return next((item for item in self._items if item.id == transaction_id), None)

    def append(self, transaction: Transaction) -> None:
        if transaction.id in self:
            raise ValueError(f"Duplicate transaction id: {transaction.id}")
        self._items.append(transaction)

    def remove(self, transaction_id: str) -> bool:
        """Remove by id. Returns False when the id is unknown."""
        for index, item in enumerate(self._items):
            if item.id == transaction_id:
                del self._items[index]
                return True
        return False

    def items(self) -> list[Transaction]:
        return list(self._items)

    def newest_first(self) -> list[Transaction]:
        return sort_newest_first(self._items)
