"""
Shared money parsing utilities with multi-locale support.

Receipts come from Italian, French, German, Spanish and English tills, so the
decimal separator may be either a comma or a dot:
- European: 1.234,56 or 45,50
- US/UK: 1,234.56 or 45.50

Every amount the engine reports is a Decimal quantized to cents.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional
import re


# Valid range for a locally extracted receipt total.
MIN_AMOUNT = Decimal("0.10")
MAX_AMOUNT = Decimal("9999.99")

CENTS = Decimal("0.01")


class MoneyFormat(Enum):
    """Money format locale hints."""
    US = "US"  # 1,234.56
    EUROPEAN = "EUROPEAN"  # 1.234,56 or 45,50
    AUTO = "AUTO"  # Auto-detect based on separator patterns


def parse_money(
    amount_str: str,
    format_hint: Optional[MoneyFormat] = None,
) -> Optional[Decimal]:
    """
    Parse a money string with multi-locale support.

    Args:
        amount_str: String containing amount (e.g., "€ 45,50", "1.234,56 EUR")
        format_hint: Optional locale hint (US, EUROPEAN, AUTO)

    Returns:
        Decimal amount or None if parsing fails

    Examples:
        >>> parse_money("45,50")
        Decimal('45.50')
        >>> parse_money("1.234,56")
        Decimal('1234.56')
        >>> parse_money("$1,234.56")
        Decimal('1234.56')
    """
    if not amount_str or not isinstance(amount_str, str):
        return None

    cleaned = amount_str.strip()

    # Strip currency symbols and ISO codes
    cleaned = re.sub(r'[$£€]\s*|\b[A-Z]{3}\b\s*', '', cleaned, flags=re.IGNORECASE)
    cleaned = cleaned.strip()

    if not cleaned or cleaned.startswith('-'):
        return None

    detected_format = format_hint or MoneyFormat.AUTO
    if detected_format == MoneyFormat.AUTO:
        detected_format = _detect_money_format(cleaned)

    try:
        if detected_format == MoneyFormat.EUROPEAN:
            return _parse_european_format(cleaned)
        return _parse_us_format(cleaned)
    except (InvalidOperation, ValueError, AttributeError):
        return None


def _detect_money_format(amount_str: str) -> MoneyFormat:
    """
    Auto-detect money format based on separator patterns.

    Heuristics:
    - Ends with ,X or ,XX (comma + 1-2 digits): European
    - Dot before the last comma (1.234,56): European
    - Otherwise US
    """
    if re.search(r',\d{1,2}$', amount_str):
        return MoneyFormat.EUROPEAN

    if '.' in amount_str and ',' in amount_str:
        if amount_str.index('.') < amount_str.rindex(','):
            return MoneyFormat.EUROPEAN

    return MoneyFormat.US


def _parse_us_format(amount_str: str) -> Optional[Decimal]:
    """Parse US format: comma thousands separator, dot decimal separator."""
    cleaned = amount_str.replace(',', '').replace(' ', '')
    try:
        return Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None


def _parse_european_format(amount_str: str) -> Optional[Decimal]:
    """Parse European format: dot or space thousands separator, comma decimal."""
    cleaned = amount_str.replace('.', '').replace(' ', '')
    cleaned = cleaned.replace(',', '.')
    try:
        return Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None


def parse_amount(amount_str: str) -> Optional[Decimal]:
    """
    Parse a receipt amount and validate it against the accepted range.

    Values outside [MIN_AMOUNT, MAX_AMOUNT] are extraction noise (barcodes,
    VAT numbers, phone fragments) and are discarded.

    Returns:
        Amount quantized to cents, or None
    """
    value = parse_money(amount_str)
    if value is None:
        return None
    return validate_amount(value)


def validate_amount(value: Decimal) -> Optional[Decimal]:
    """Return the value quantized to cents when it lies in the valid range."""
    if not value.is_finite():
        return None
    if value < MIN_AMOUNT or value > MAX_AMOUNT:
        return None
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(amount: Optional[Decimal], currency: str = 'EUR') -> str:
    """
    Format Decimal amount as money string for logs and messages.

    Examples:
        >>> format_money(Decimal('45.5'))
        '€45.50'
    """
    if amount is None:
        return 'N/A'

    symbol_map = {
        'EUR': '€',
        'USD': '$',
        'GBP': '£',
    }
    symbol = symbol_map.get(currency.upper(), currency)

    return f"{symbol}{amount:,.2f}"
