"""
Receipt extraction service: one structured expense record per scan.

Flow per scan:
    1. local parse of the OCR text (amount, date, merchant)
    2. category match against static + learned keywords
    3. escalation decision; a strong local match with an amount is final
    4. otherwise the remote vision adapter reads the images, and its fields
       are merged over the local ones

The service keeps no per-scan state, so one instance serves concurrent scans.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from yachtexpense.models.extraction import (
    CategoryMatch,
    DocumentKind,
    EscalationState,
    LearnedKeyword,
    LocalExtraction,
    RawExtractionInput,
    ReceiptExtractionResult,
    RemoteExtraction,
    ResultSource,
)
from yachtexpense.services.categorizer import CategoryMatcher
from yachtexpense.services.keywords import KeywordStore
from yachtexpense.services.parser import ReceiptParser
from yachtexpense.services.vision import RemoteVisionAdapter
from yachtexpense.utils.money import format_money
from yachtexpense.utils.scoring import classify_confidence, decide_escalation

logger = logging.getLogger(__name__)

LOCAL = "local"
REMOTE = "remote"


class ReceiptExtractionService:
    """Turns a scan into a ReceiptExtractionResult, escalating only when needed."""

    def __init__(
        self,
        keyword_store: KeywordStore,
        matcher: Optional[CategoryMatcher] = None,
        parser: Optional[ReceiptParser] = None,
        vision: Optional[RemoteVisionAdapter] = None,
    ):
        self.keyword_store = keyword_store
        self.matcher = matcher or CategoryMatcher(keyword_store)
        self.parser = parser or ReceiptParser()
        self.vision = vision

    def process_text(
        self,
        text: Optional[str],
        images: Sequence[bytes] = (),
        document_kind: DocumentKind = DocumentKind.RECEIPT,
    ) -> ReceiptExtractionResult:
        return self.process(RawExtractionInput(
            text=text,
            images=tuple(images),
            document_kind=document_kind,
        ))

    def process_images(
        self,
        images: Sequence[bytes],
        text: Optional[str] = None,
        document_kind: DocumentKind = DocumentKind.RECEIPT,
    ) -> ReceiptExtractionResult:
        return self.process_text(text, images, document_kind)

    def process_invoice_pdf(
        self,
        pdf_data: bytes,
        text: Optional[str] = None,
    ) -> ReceiptExtractionResult:
        """Render a PDF invoice to page images and run the invoice path."""
        pages: List[bytes] = self.vision.pdf_to_images(pdf_data) if self.vision else []
        return self.process_text(text, pages, DocumentKind.INVOICE)

    def process(self, raw: RawExtractionInput) -> ReceiptExtractionResult:
        """
        Extract one expense record.

        Never raises: an unexpected failure is logged and reported as an
        empty low-confidence local result.
        """
        try:
            return self._process(raw)
        except Exception as e:
            logger.error("Receipt extraction failed", extra={
                "document_kind": raw.document_kind.value,
                "error": str(e)
            }, exc_info=True)
            return _build_result(
                LocalExtraction(),
                category_name=None,
                source=ResultSource.LOCAL,
                escalation=EscalationState.LOCAL_ONLY,
            )

    def _process(self, raw: RawExtractionInput) -> ReceiptExtractionResult:
        learned = self.keyword_store.learned_keywords()

        local = self.parser.parse(raw.text)
        match = self.matcher.match_category(raw.text, learned)
        escalation = decide_escalation(local.amount is not None, match.strength)

        logger.debug("Local extraction", extra={
            "amount": format_money(local.amount),
            "category": match.category_name,
            "score": match.score,
            "strength": match.strength.value,
            "escalation": escalation.value
        })

        if escalation == EscalationState.RESOLVED:
            return self._local_result(local, match, escalation)

        try:
            remote = self._ask_remote(raw)
        except Exception as e:
            logger.error("Remote vision failed, keeping local result", extra={
                "document_kind": raw.document_kind.value,
                "error": str(e)
            }, exc_info=True)
            remote = None

        if remote is None:
            return self._local_result(local, match, EscalationState.LOCAL_ONLY)

        return self._merge(local, match, remote, learned)

    def _ask_remote(self, raw: RawExtractionInput) -> Optional[RemoteExtraction]:
        if self.vision is None or not self.vision.is_configured:
            logger.debug("Remote vision unavailable, keeping local result")
            return None
        if not raw.has_images:
            logger.debug("No images to send, keeping local result")
            return None
        return self.vision.extract(raw.images, raw.document_kind)

    def _local_result(
        self,
        local: LocalExtraction,
        match: CategoryMatch,
        escalation: EscalationState,
    ) -> ReceiptExtractionResult:
        result = _build_result(
            local,
            category_name=match.category_name,
            source=ResultSource.LOCAL,
            escalation=escalation,
        )
        logger.info("Receipt extracted locally", extra={
            "amount": format_money(result.amount),
            "category": result.category_name,
            "confidence": result.confidence.value,
            "escalation": escalation.value
        })
        return result

    def _merge(
        self,
        local: LocalExtraction,
        match: CategoryMatch,
        remote: RemoteExtraction,
        learned: List[LearnedKeyword],
    ) -> ReceiptExtractionResult:
        """
        Remote fields win, local values fill the gaps.

        A learned keyword found in the final merchant name overrides the
        category, since it encodes what the user confirmed before.
        """
        origins: Dict[str, str] = {}

        amount, origins["amount"] = _prefer(remote.amount, local.amount)
        receipt_date, origins["date"] = _prefer(remote.date, local.date)
        merchant_name, origins["merchant_name"] = _prefer(remote.merchant_name, local.merchant_name)

        learned_category = self.matcher.match_merchant(merchant_name, learned)
        if learned_category is not None and learned_category != remote.category_name:
            category_name, origins["category_name"] = learned_category, LOCAL
            logger.info("Learned keyword overrides remote category", extra={
                "merchant_name": merchant_name,
                "remote_category": remote.category_name,
                "category": learned_category
            })
        else:
            category_name, origins["category_name"] = _prefer(
                remote.category_name, match.category_name
            )

        used = {origin for origin in origins.values() if origin is not None}
        if used == {REMOTE}:
            source = ResultSource.REMOTE
        elif REMOTE in used:
            source = ResultSource.MERGED
        else:
            source = ResultSource.LOCAL

        result = _build_result(
            LocalExtraction(amount=amount, date=receipt_date, merchant_name=merchant_name),
            category_name=category_name,
            source=source,
            escalation=EscalationState.NEEDS_REMOTE,
        )
        logger.info("Receipt extracted with remote vision", extra={
            "amount": format_money(result.amount),
            "category": result.category_name,
            "confidence": result.confidence.value,
            "source": source.value
        })
        return result


def _prefer(remote_value, local_value) -> Tuple[object, Optional[str]]:
    if remote_value is not None:
        return remote_value, REMOTE
    if local_value is not None:
        return local_value, LOCAL
    return None, None


def _build_result(
    fields: LocalExtraction,
    category_name: Optional[str],
    source: ResultSource,
    escalation: EscalationState,
) -> ReceiptExtractionResult:
    return ReceiptExtractionResult(
        amount=fields.amount,
        date=fields.date,
        merchant_name=fields.merchant_name,
        category_name=category_name,
        confidence=classify_confidence(fields.amount is not None, category_name is not None),
        source=source,
        escalation=escalation,
    )
