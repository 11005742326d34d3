from decimal import Decimal

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥"}


def format_currency(amount: Decimal, currency_code: str = "USD") -> str:
    """Format an amount as currency string, e.g. '$1,234.56'."""
    symbol = CURRENCY_SYMBOLS.get(currency_code, f"{currency_code} ")
    return f"{symbol}{amount:,.2f}"


def format_signed(amount: Decimal, currency_code: str = "USD") -> str:
    """Format with +/- sign."""
    sign = "+" if amount >= 0 else "-"
    return f"{sign}{format_currency(abs(amount), currency_code)}"


def format_totals(totals: dict[str, Decimal]) -> str:
    """Section header totals, one signed figure per currency: '+$12.00 · -€3.50'."""
    return " · ".join(format_signed(totals[code], code) for code in sorted(totals))
