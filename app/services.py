from domain.currency import BASE_CURRENCY, RateTable, normalize


class CurrencyService:
    """Normalizer bound to one rate table snapshot."""

    def __init__(self, rates: RateTable):
        self._rates = rates

    @property
    def base_currency(self) -> str:
        return BASE_CURRENCY

    @property
    def rates(self) -> RateTable:
        return self._rates

    def get_rate(self, currency: str) -> float:
        return self._rates.factor(currency)

    def convert(self, amount: float, currency: str) -> float:
        """Convert amount to the base currency.

        Raises InvalidCurrency if the currency is not supported.
        """
        return normalize(amount, currency, self._rates)

    def gold_value(self, kyattha: float) -> float:
        """Value of ``kyattha`` units of gold in the base currency."""
        return kyattha * self._rates.Gold
