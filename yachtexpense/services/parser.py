"""
Receipt parser service for extracting the local fields from OCR text.

The amount is pulled out with a strict priority cascade: the first tier that
yields a valid amount wins, later tiers are never consulted.

    1. payment keywords (PAGATO, PAID, CONTANTI, CARD, ...) + number
    2. TOTAL keywords + number, skipping SUBTOTAL and tax-total lines
    3. "WORD: number" lines among the last lines of the receipt
    4. largest currency-marked number >= 1.00
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from yachtexpense.models.extraction import LocalExtraction
from yachtexpense.utils.money import parse_amount

logger = logging.getLogger(__name__)


# Decimal numeral with comma or dot separator and exactly two decimals.
# Not preceded or followed by a digit (or separator + digit), so neither a
# number fragment nor a dotted date like 05.01.2024 reads as an amount.
AMOUNT = r'(?<!\d)(?<!\d[.,])(\d{1,3}(?:[.,]\d{3})+[.,]\d{2}|\d+[.,]\d{2})(?![.,]?\d)'
CURRENCY = r'(?:€|EURO?)'
# Keyword and amount must share a line.
SEP = r'[ \t:=.\-]*'

PAID_WORDS = r'(?:IMPORTO\s+PAGATO|PAGATO|PAID|PAY[ÉE]|BEZAHLT|PAGADO)'
TENDER_WORDS = (
    r'(?:CONTANTI|CARTA(?:\s+DI\s+CREDITO)?|BANCOMAT|CASH|(?:CREDIT\s+|DEBIT\s+)?CARD'
    r'|ESP[ÈE]CES|CARTE(?:\s+BANCAIRE)?|BARZAHLUNG|BAR(?=\s*:)|EC-KARTE'
    r'|KARTENZAHLUNG|KARTE|EFECTIVO|TARJETA)'
)
TOTAL_WORDS = (
    r'(?:IMPORTO\s+TOTALE|TOTALE(?:\s+COMPLESSIVO)?|TOTAL|GESAMTBETRAG|GESAMT'
    r'|SUMME|MONTANT|TOTAAL)'
)

SUBTOTAL_LINE = re.compile(r'SUB\s*[-.]?\s*TOTAL')
TAX_LINE = re.compile(r'\b(?:IVA|TAX|VAT|TVA|MWST|IMPOSTA|IGIC|IMPONIBILE|HT)\b')
TAIL_REJECT = re.compile(
    r'SUB|\b(?:IVA|TAX|VAT|TVA|MWST|IMPONIBILE|RESTO|CHANGE|RENDU|SCONTO'
    r'|DISCOUNT|REMISE|RABATT|CAMBIO)\b'
)
# Clock times such as "ORA: 12.30" look like amounts.
TIME_LABEL = re.compile(r'\b(?:ORA|ORE|TIME|HEURE|UHRZEIT|ZEIT|HORA)\b')

# How many trailing lines tier 3 looks at.
TAIL_LINES = 8

MIN_FALLBACK_AMOUNT = Decimal("1.00")

MERCHANT_BOILERPLATE = re.compile(
    r'SCONTRINO|DOCUMENTO\s+COMMERCIALE|RICEVUTA|FATTURA|FISCALE|TICKET\b'
    r'|BENVENUT|WELCOME|BIENVENUE|WILLKOMMEN|BIENVENIDO|P\.?\s*IVA|PARTITA'
    r'|C\.?F\.|\bTEL\b|\bFAX\b|^VIA\b|^VIALE\b|^PIAZZA\b|^CORSO\b|^RUE\b'
    r'|STRASSE|STRAßE|^CALLE\b|\d{5}|WWW\.|@',
    re.IGNORECASE,
)


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern with example and notes for documentation."""
    name: str
    pattern: str
    example: str
    notes: Optional[str] = None
    priority: Optional[int] = None
    flags: int = re.IGNORECASE | re.MULTILINE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


class ReceiptParser:
    """Service for parsing receipt text into amount, date and merchant."""

    def __init__(self):
        """Initialize parser with regex patterns."""
        self._init_patterns()

    def _init_patterns(self):
        """Initialize regex patterns for parsing."""

        # Tier 1: explicit "paid" words are tried before card/cash words so a
        # CONTANTI 50,00 tender line never beats PAGATO 45,50.
        self.payment_patterns = [
            PatternSpec(
                name='paid_keyword',
                pattern=rf'\b{PAID_WORDS}\b{SEP}(?:{CURRENCY}{SEP})?{AMOUNT}',
                example='PAGATO 45,50',
                notes='Names the payment event itself (highest confidence)',
                priority=1,
            ),
            PatternSpec(
                name='tender_keyword',
                pattern=rf'\b{TENDER_WORDS}\b{SEP}(?:{CURRENCY}{SEP})?{AMOUNT}',
                example='CARTA DI CREDITO EUR 45,50',
                notes='Cash or card tender line',
                priority=1,
            ),
        ]

        # Tier 2: evaluated line by line
        self.total_pattern = PatternSpec(
            name='total_keyword',
            pattern=rf'\b{TOTAL_WORDS}\b[^\d\n]{{0,20}}?{AMOUNT}',
            example='TOTALE EURO 45,50',
            notes='Lines with SUB before TOTAL or a tax total are skipped',
            priority=2,
        )
        self.total_keyword_only = PatternSpec(
            name='total_keyword_only',
            pattern=rf'\b{TOTAL_WORDS}\b',
            example='TOTALE',
            notes='Keyword alone on its line, amount on the next one',
            priority=2,
        )
        self.bare_amount_line = PatternSpec(
            name='bare_amount_line',
            pattern=rf'^\s*(?:{CURRENCY}\s*)?{AMOUNT}\s*(?:{CURRENCY})?\s*$',
            example='45,50 €',
            priority=2,
        )

        # Tier 3
        self.labelled_amount = PatternSpec(
            name='labelled_amount',
            pattern=rf"^\s*[A-ZÀ-Ü][A-ZÀ-Ü' .]{{1,30}}?\s*:\s*(?:{CURRENCY}\s*)?{AMOUNT}",
            example='IMPORTO: 45,50',
            notes='Only the last lines of the receipt are scanned',
            priority=3,
        )

        # Tier 4
        self.currency_patterns = [
            PatternSpec(
                name='currency_prefix',
                pattern=rf'(?:€|\bEURO?|\$|£)\s*{AMOUNT}',
                example='€ 45,50',
                priority=4,
            ),
            PatternSpec(
                name='currency_suffix',
                pattern=rf'{AMOUNT}\s*(?:€|EURO?\b)',
                example='45,50 EUR',
                priority=4,
            ),
        ]

        # Dates: European day-first order, plus ISO
        self.date_patterns = [
            PatternSpec(
                name='european_date',
                pattern=r'(?<!\d)(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4}|\d{2})(?!\d)',
                example='25/01/2024',
                notes='DD/MM/YYYY, DD-MM-YY, DD.MM.YYYY',
            ),
            PatternSpec(
                name='iso_date',
                pattern=r'(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)',
                example='2024-01-25',
            ),
        ]

    def parse(self, text: Optional[str]) -> LocalExtraction:
        """
        Parse receipt text and extract all local fields.

        Args:
            text: OCR-extracted text from receipt

        Returns:
            LocalExtraction with whatever could be found
        """
        if not text:
            return LocalExtraction()

        return LocalExtraction(
            amount=self.extract_amount(text),
            date=self.extract_date(text),
            merchant_name=self.extract_merchant(text),
        )

    def extract_amount(self, text: Optional[str]) -> Optional[Decimal]:
        """
        Extract the paid total using the priority cascade.

        Args:
            text: Receipt text

        Returns:
            Amount as Decimal (cents) or None. Never raises.
        """
        if not text:
            return None

        try:
            upper = text.upper()
            lines = upper.splitlines()

            tiers = (
                ('payment', lambda: self._first_payment_amount(upper)),
                ('total', lambda: self._first_total_amount(lines)),
                ('tail', lambda: self._first_tail_amount(lines)),
                ('currency_max', lambda: self._max_currency_amount(upper)),
            )

            for tier_name, tier in tiers:
                amount = tier()
                if amount is not None:
                    logger.debug("Amount extracted", extra={
                        "tier": tier_name,
                        "amount": str(amount),
                    })
                    return amount

            logger.debug("No amount pattern matched")
            return None

        except (re.error, AttributeError):
            logger.warning("Error extracting amount", exc_info=True)
            return None

    def _first_valid(self, matches: Iterable[re.Match]) -> Optional[Decimal]:
        for match in matches:
            amount = parse_amount(match.group(1))
            if amount is not None:
                return amount
        return None

    def _first_payment_amount(self, text: str) -> Optional[Decimal]:
        for spec in self.payment_patterns:
            amount = self._first_valid(spec.compiled.finditer(text))
            if amount is not None:
                return amount
        return None

    def _first_total_amount(self, lines: List[str]) -> Optional[Decimal]:
        for index, line in enumerate(lines):
            if SUBTOTAL_LINE.search(line):
                continue

            # "TOTALE IVA 8,18" is a tax total; "TOTALE 45,50 IVA INCL." is not
            tax = TAX_LINE.search(line)
            for match in self.total_pattern.compiled.finditer(line):
                if tax and tax.start() < match.start(1):
                    continue
                amount = parse_amount(match.group(1))
                if amount is not None:
                    return amount

            # TOTALE on its own line, figure printed underneath
            if tax:
                continue
            if self.total_keyword_only.compiled.search(line) and index + 1 < len(lines):
                next_line = self.bare_amount_line.compiled.match(lines[index + 1])
                if next_line:
                    amount = parse_amount(next_line.group(1))
                    if amount is not None:
                        return amount
        return None

    def _first_tail_amount(self, lines: List[str]) -> Optional[Decimal]:
        tail = [line for line in lines if line.strip()][-TAIL_LINES:]
        for line in tail:
            if TAIL_REJECT.search(line) or TIME_LABEL.search(line):
                continue
            if any(spec.compiled.search(line) for spec in self.date_patterns):
                continue
            match = self.labelled_amount.compiled.match(line)
            if match:
                amount = parse_amount(match.group(1))
                if amount is not None:
                    return amount
        return None

    def _max_currency_amount(self, text: str) -> Optional[Decimal]:
        values = []
        for spec in self.currency_patterns:
            for match in spec.compiled.finditer(text):
                amount = parse_amount(match.group(1))
                if amount is not None and amount >= MIN_FALLBACK_AMOUNT:
                    values.append(amount)
        return max(values) if values else None

    def extract_date(self, text: Optional[str]) -> Optional[date]:
        """
        Extract the first valid receipt date, reading numeric dates day-first.

        Two-digit years are taken as 20YY.
        """
        if not text:
            return None

        found: List[Tuple[int, date]] = []
        for spec in self.date_patterns:
            for match in spec.compiled.finditer(text):
                a, b, c = (int(group) for group in match.groups())
                if spec.name == 'iso_date':
                    year, month, day = a, b, c
                else:
                    day, month, year = a, b, c
                    if year < 100:
                        year += 2000
                if not 2000 <= year <= 2099:
                    continue
                try:
                    found.append((match.start(), date(year, month, day)))
                except ValueError:
                    continue

        if not found:
            return None
        found.sort(key=lambda item: item[0])
        return found[0][1]

    def extract_merchant(self, text: Optional[str]) -> Optional[str]:
        """
        Pick the merchant name from the receipt header.

        Looks at the first 5 non-empty lines and returns the first one that
        reads like a business name rather than fiscal boilerplate, an address,
        an amount or a date.
        """
        if not text:
            return None

        header = [line.strip() for line in text.splitlines() if line.strip()][:5]
        for line in header:
            if MERCHANT_BOILERPLATE.search(line):
                continue
            if re.search(AMOUNT, line):
                continue
            if any(spec.compiled.search(line) for spec in self.date_patterns):
                continue

            letters = sum(1 for char in line if char.isalpha())
            if letters < 3 or letters < len(line.replace(' ', '')) / 2:
                continue

            name = self._clean_merchant_name(line)
            if name:
                return name

        return None

    def _clean_merchant_name(self, name: str) -> str:
        """
        Clean a merchant header line.

        Keeps letters, digits, spaces and & ' - . characters, normalizes
        whitespace and limits the name to 6 words.
        """
        name = re.sub(r"[^\w\s&'.\-]", '', name)
        name = name.replace('_', ' ')

        words = name.split()
        if len(words) > 6:
            words = words[:6]

        return ' '.join(words).strip(" .-")
