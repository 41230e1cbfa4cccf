"""Currency formatting and billing-frequency normalisation."""

from collections.abc import Iterable

NO_DECIMAL_CURRENCIES = {"IDR", "KRW", "JPY"}

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "KRW": "₩",
    "INR": "₹",
    "CAD": "CA$",
    "AUD": "A$",
    "IDR": "IDR ",
}

FREQUENCY_SUFFIXES = {
    "monthly": "/mo",
    "yearly": "/yr",
    "annual": "/yr",
    "quarterly": "/qtr",
    "weekly": "/wk",
    "daily": "/day",
}

# Average number of weeks in a month
WEEKS_PER_MONTH = 4.33


def convert_to_monthly(amount: float, frequency: str) -> float:
    """Return the monthly equivalent of ``amount`` billed every ``frequency``.

    Unknown frequencies are treated as monthly.
    """
    frequency = frequency.lower()
    if frequency == "monthly":
        return amount
    if frequency in ("yearly", "annual"):
        return amount / 12
    if frequency == "quarterly":
        return amount / 3
    if frequency == "weekly":
        return amount * WEEKS_PER_MONTH
    if frequency == "daily":
        return amount * 30
    return amount


def convert_to_annual(amount: float, frequency: str) -> float:
    """Return the yearly equivalent of ``amount`` billed every ``frequency``.

    Unknown frequencies are treated as monthly.
    """
    frequency = frequency.lower()
    if frequency == "monthly":
        return amount * 12
    if frequency in ("yearly", "annual"):
        return amount
    if frequency == "quarterly":
        return amount * 4
    if frequency == "weekly":
        return amount * 52
    if frequency == "daily":
        return amount * 365
    return amount * 12


def format_currency(amount: float, currency: str = "IDR") -> str:
    """Format an amount for display, e.g. ``$9.99`` or ``IDR 49,000``."""
    currency = currency.upper()
    decimals = 0 if currency in NO_DECIMAL_CURRENCIES else 2
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.{decimals}f}"


def frequency_suffix(frequency: str) -> str:
    return FREQUENCY_SUFFIXES.get(frequency.lower(), "")


def format_currency_with_frequency(amount: float, frequency: str, currency: str = "IDR") -> str:
    """Format an amount followed by its billing suffix, e.g. ``$9.99/mo``."""
    return f"{format_currency(amount, currency)}{frequency_suffix(frequency)}"


class CurrencyConverter:
    """Converts amounts with a preloaded table of exchange rates.

    Rates are looked up by ``(from_currency, to_currency)``. A missing rate
    leaves the amount unchanged.
    """

    def __init__(self, rates: dict[tuple[str, str], float] | None = None):
        self.rates = dict(rates or {})

    def add_rate(self, from_currency: str, to_currency: str, rate: float) -> None:
        self.rates[(from_currency.upper(), to_currency.upper())] = rate

    def get_rate(self, from_currency: str, to_currency: str) -> float | None:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return 1.0
        return self.rates.get((from_currency, to_currency))

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        rate = self.get_rate(from_currency, to_currency)
        if rate is None:
            return amount
        return amount * rate

    def missing_pairs(self, currencies: Iterable[str], target: str) -> list[str]:
        """Currencies in ``currencies`` that cannot be converted to ``target``."""
        return sorted(
            {c.upper() for c in currencies if self.get_rate(c, target) is None}
        )
