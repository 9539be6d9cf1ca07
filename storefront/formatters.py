# storefront/formatters.py
from decimal import ROUND_HALF_UP, Decimal

CURRENCY_SYMBOLS = {"EUR": "€", "USD": "US$", "GBP": "£"}


def format_price(amount, currency: str = "EUR") -> str:
    # Dutch grouping: "€ 1.234,50"
    value = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    text = f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    code = currency.upper()
    return f"{CURRENCY_SYMBOLS.get(code, code)} {text}"
