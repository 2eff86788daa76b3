"""
Remote vision fallback for receipts the local heuristics cannot settle.

Images are shrunk and re-encoded as JPEG, sent to the Anthropic Messages API
together with a prompt listing the category vocabulary, and the JSON reply is
validated field by field. Any failure (network, status, malformed body) means
"no remote contribution" and is reported as None, never raised.
"""

import base64
import io
import json
import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence

import requests
from PIL import Image, ImageOps
from pdf2image import convert_from_bytes

from yachtexpense.config import Settings, settings
from yachtexpense.models.extraction import DocumentKind, RemoteExtraction
from yachtexpense.utils.categories import CATEGORY_DESCRIPTIONS, is_valid_category
from yachtexpense.utils.money import CENTS, parse_money

logger = logging.getLogger(__name__)


# Points per inch in a PDF; pages are rendered at twice that.
PDF_BASE_DPI = 72
PDF_SCALE = 2

MIN_JPEG_QUALITY = 30
MIN_IMAGE_WIDTH = 320

CODE_FENCE = re.compile(r'```(?:json)?', re.IGNORECASE)

# Placeholders the prompt offers when the name is unreadable.
PLACEHOLDER_MERCHANTS = frozenset({"UNKNOWN", "UNKNOWN STORE", "UNKNOWN SUPPLIER", "N/A"})

RECEIPT_PROMPT = """Analyze this receipt image and extract the following information.

INSTRUCTIONS:
1. AMOUNT: Find the TOTAL PAID amount (final amount including tax/VAT)
   - Look for keywords: "TOTALE", "PAGATO", "CARTA", "CONTANTI", "BANCOMAT", "TOTAL", "IMPORTO"
   - This is the FINAL amount the customer paid, NOT subtotals or individual items
   - Return as a number with 2 decimals (e.g., 45.50)

2. DATE: Find the receipt date
   - Return in YYYY-MM-DD format (e.g., 2024-12-23)
   - IMPORTANT: Dates are printed in EUROPEAN format DD/MM/YYYY (day/month/year)
   - Example: 05/01/2024 means 5 January 2024

3. MERCHANT: Extract the store/business name
   - Usually the first 1-2 lines of the receipt
   - Include the brand name (e.g., "CONAD", "ENI", "Ristorante Da Mario")

4. CATEGORY: Suggest ONE category from this EXACT list:
{categories}

RESPONSE FORMAT:
Reply with ONLY a JSON object, no other text:
{{"amount": 45.50, "date": "2024-12-23", "merchant": "Bar Roma", "category": "Food"}}

If you cannot determine a value with confidence, use null:
{{"amount": 45.50, "date": null, "merchant": "Unknown Store", "category": null}}
"""

INVOICE_PROMPT = """Analyze this invoice document and extract the following information.

INSTRUCTIONS:
1. AMOUNT: Find the TOTAL INVOICE AMOUNT (final amount to pay)
   - Look for keywords: "Totale Fattura", "Totale Documento", "Netto a Pagare", "Total Amount", "Amount Due"
   - This must be the FINAL amount including VAT/IVA
   - If you only see "Imponibile" + "IVA", sum them for the total
   - Return as a number with 2 decimals (e.g., 1250.00)

2. DATE: Find the INVOICE DATE (emission date, not payment due date)
   - Return in YYYY-MM-DD format (e.g., 2024-12-23)
   - Dates are printed in EUROPEAN format DD/MM/YYYY (day/month/year)

3. SUPPLIER: Extract the supplier company name
   - This is who ISSUED the invoice, not who receives it

4. CATEGORY: Suggest ONE category from this EXACT list based on the invoice content:
{categories}

RESPONSE FORMAT:
Reply with ONLY a JSON object, no other text:
{{"amount": 1250.00, "date": "2024-12-23", "merchant": "ABC Services SRL", "category": "Chandlery"}}

If you cannot determine a value with confidence, use null:
{{"amount": 1250.00, "date": null, "merchant": "Unknown Supplier", "category": null}}
"""


class RemoteVisionAdapter:
    """Client for the remote vision extraction service."""

    def __init__(
        self,
        api_key: str = "",
        api_url: str = "https://api.anthropic.com/v1/messages",
        api_version: str = "2023-06-01",
        model: str = "claude-haiku-4-5-20251001",
        receipt_max_tokens: int = 300,
        invoice_max_tokens: int = 400,
        receipt_timeout: float = 30.0,
        invoice_timeout: float = 60.0,
        max_image_width: int = 1200,
        jpeg_quality: int = 70,
        max_image_bytes: int = 4_500_000,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.api_version = api_version
        self.model = model
        self.receipt_max_tokens = receipt_max_tokens
        self.invoice_max_tokens = invoice_max_tokens
        self.receipt_timeout = receipt_timeout
        self.invoice_timeout = invoice_timeout
        self.max_image_width = max_image_width
        self.jpeg_quality = jpeg_quality
        self.max_image_bytes = max_image_bytes
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, config: Settings = settings, session: Optional[requests.Session] = None):
        """Build an adapter from application settings."""
        return cls(
            api_key=config.VISION_API_KEY,
            api_url=config.VISION_API_URL,
            api_version=config.VISION_API_VERSION,
            model=config.VISION_MODEL,
            receipt_max_tokens=config.VISION_MAX_TOKENS_RECEIPT,
            invoice_max_tokens=config.VISION_MAX_TOKENS_INVOICE,
            receipt_timeout=config.VISION_TIMEOUT_SECONDS,
            invoice_timeout=config.VISION_INVOICE_TIMEOUT_SECONDS,
            max_image_width=config.MAX_IMAGE_WIDTH,
            jpeg_quality=config.JPEG_QUALITY,
            max_image_bytes=config.MAX_IMAGE_BYTES,
            session=session,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    # ------------------------------------------------------------------
    # Image preparation
    # ------------------------------------------------------------------

    def prepare_image(self, image_data: bytes) -> Optional[bytes]:
        """
        Re-encode an image as an RGB JPEG under the configured size limits.

        Width is capped at max_image_width. When the encoded result is still
        above max_image_bytes, quality drops first, then width.

        Returns:
            JPEG bytes, or None when the data cannot be decoded
        """
        try:
            image = Image.open(io.BytesIO(image_data))
            image.load()
            # Phone photos carry their rotation in EXIF
            image = ImageOps.exif_transpose(image)
            if image.mode != 'RGB':
                image = image.convert('RGB')
        except Exception as e:
            logger.warning("Skipping undecodable image", extra={
                "size_bytes": len(image_data) if image_data else 0,
                "error": str(e)
            })
            return None

        width = min(image.width, self.max_image_width)
        quality = self.jpeg_quality

        while True:
            encoded = self._encode_jpeg(image, width, quality)
            if len(encoded) <= self.max_image_bytes:
                return encoded

            if quality > MIN_JPEG_QUALITY:
                quality = max(MIN_JPEG_QUALITY, quality - 10)
            elif width > MIN_IMAGE_WIDTH:
                width = max(MIN_IMAGE_WIDTH, int(width * 0.75))
            else:
                logger.warning("Image still above size limit after shrinking", extra={
                    "size_bytes": len(encoded),
                    "limit_bytes": self.max_image_bytes
                })
                return encoded

    def _encode_jpeg(self, image: Image.Image, width: int, quality: int) -> bytes:
        if image.width > width:
            height = max(1, round(image.height * width / image.width))
            image = image.resize((width, height), Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        image.save(buffer, format='JPEG', quality=quality)
        return buffer.getvalue()

    def pdf_to_images(self, pdf_data: bytes) -> List[bytes]:
        """
        Render every PDF page to a PNG image at twice the native resolution.

        Returns:
            One PNG per page, or an empty list when the PDF cannot be rendered
        """
        try:
            pages = convert_from_bytes(pdf_data, dpi=PDF_BASE_DPI * PDF_SCALE)
        except Exception as e:
            logger.error("Error rendering PDF pages", extra={
                "size_bytes": len(pdf_data) if pdf_data else 0,
                "error": str(e)
            }, exc_info=True)
            return []

        images = []
        for page in pages:
            buffer = io.BytesIO()
            page.save(buffer, format='PNG')
            images.append(buffer.getvalue())

        logger.debug("Rendered PDF pages", extra={"pages": len(images)})
        return images

    # ------------------------------------------------------------------
    # Request
    # ------------------------------------------------------------------

    def build_prompt(self, kind: DocumentKind = DocumentKind.RECEIPT) -> str:
        """Prompt text listing the category vocabulary with descriptions."""
        hint_index = 1 if kind == DocumentKind.INVOICE else 0
        categories = "\n".join(
            f'   - "{name}" → {hints[hint_index]}'
            for name, hints in CATEGORY_DESCRIPTIONS.items()
        )
        template = INVOICE_PROMPT if kind == DocumentKind.INVOICE else RECEIPT_PROMPT
        return template.format(categories=categories)

    def build_request_body(
        self,
        jpeg_images: Sequence[bytes],
        kind: DocumentKind = DocumentKind.RECEIPT,
    ) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": "image/jpeg",
                    "data": base64.b64encode(jpeg).decode('ascii'),
                },
            }
            for jpeg in jpeg_images
        ]
        content.append({"type": "text", "text": self.build_prompt(kind)})

        max_tokens = self.invoice_max_tokens if kind == DocumentKind.INVOICE else self.receipt_max_tokens
        return {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": content}],
        }

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "content-type": "application/json",
        }

    def extract(
        self,
        images: Sequence[bytes],
        kind: DocumentKind = DocumentKind.RECEIPT,
    ) -> Optional[RemoteExtraction]:
        """
        Ask the remote service to read the images.

        Args:
            images: Encoded page images in order
            kind: Receipt or invoice, selects prompt, token budget and timeout

        Returns:
            Validated RemoteExtraction, or None when nothing usable came back
        """
        if not self.is_configured:
            logger.debug("Remote vision not configured")
            return None

        prepared = [jpeg for jpeg in (self.prepare_image(image) for image in images) if jpeg]
        if not prepared:
            logger.warning("No usable images for remote vision", extra={
                "images": len(images)
            })
            return None

        body = self.build_request_body(prepared, kind)
        timeout = self.invoice_timeout if kind == DocumentKind.INVOICE else self.receipt_timeout

        try:
            response = self.session.post(
                self.api_url,
                headers=self._headers(),
                json=body,
                timeout=timeout,
            )
        except requests.RequestException as e:
            logger.warning("Remote vision request failed", extra={
                "kind": kind.value,
                "error": str(e)
            })
            return None

        if response.status_code != 200:
            logger.warning("Remote vision returned an error status", extra={
                "kind": kind.value,
                "status_code": response.status_code
            })
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Remote vision returned a non-JSON body", extra={
                "kind": kind.value
            })
            return None

        result = self.parse_response(payload)
        logger.info("Remote vision extraction finished", extra={
            "kind": kind.value,
            "pages": len(prepared),
            "contributed": result is not None
        })
        return result

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------

    def parse_response(self, payload: Any) -> Optional[RemoteExtraction]:
        """
        Validate a Messages API response body.

        The first content block's text must hold a JSON object, optionally
        wrapped in a markdown code fence. Invalid fields are dropped one by
        one; an object with no usable field counts as no contribution.
        """
        try:
            text = payload["content"][0]["text"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Unexpected remote vision response shape")
            return None

        if not isinstance(text, str):
            return None

        cleaned = CODE_FENCE.sub('', text).strip()
        try:
            fields = json.loads(cleaned)
        except ValueError:
            logger.warning("Remote vision reply is not valid JSON", extra={
                "reply": cleaned[:200]
            })
            return None

        if not isinstance(fields, dict):
            return None

        category = fields.get("category")
        if category is not None and not is_valid_category(category):
            logger.info("Discarding unknown remote category", extra={"category": category})
            category = None

        result = RemoteExtraction(
            amount=_parse_remote_amount(fields.get("amount")),
            date=_parse_remote_date(fields.get("date")),
            merchant_name=_parse_remote_merchant(fields.get("merchant")),
            category_name=category,
        )
        return None if result.is_empty else result


def _parse_remote_amount(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
    elif isinstance(value, str):
        amount = parse_money(value)
    else:
        return None

    if amount is None or not amount.is_finite():
        return None
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    return amount if amount > 0 else None


def _parse_remote_date(value: Any) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _parse_remote_merchant(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    merchant = " ".join(value.split())
    if not merchant or merchant.upper() in PLACEHOLDER_MERCHANTS:
        return None
    return merchant
