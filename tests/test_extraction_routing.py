"""
Tests for the local-vs-remote routing of the extraction service.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from yachtexpense.models.extraction import (
    ConfidenceLevel,
    DocumentKind,
    EscalationState,
    RawExtractionInput,
    RemoteExtraction,
    ResultSource,
)
from yachtexpense.services.extraction import ReceiptExtractionService
from yachtexpense.services.vision import RemoteVisionAdapter

from tests.conftest import make_image_bytes

STRONG_RECEIPT = "RISTORANTE PIZZERIA\nCOPERTO 2,00\nTOTALE 45,50"
UNCATEGORIZED_RECEIPT = "BAR CENTRALE\nCAFFE 1,20\nIMPORTO: 2,50"


def make_vision(remote=None, configured=True):
    vision = MagicMock(spec=RemoteVisionAdapter)
    vision.is_configured = configured
    vision.extract.return_value = remote
    return vision


class TestLocalResolution:
    """A strong local match with an amount never reaches the remote service."""

    def test_strong_match_skips_remote(self, keyword_store):
        vision = make_vision()
        vision.extract.side_effect = AssertionError("remote vision must not be called")
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_text(STRONG_RECEIPT, images=[b"photo"])

        vision.extract.assert_not_called()
        assert result.amount == Decimal("45.50")
        assert result.category_name == "Food"
        assert result.confidence == ConfidenceLevel.HIGH
        assert result.source == ResultSource.LOCAL
        assert result.escalation == EscalationState.RESOLVED

    def test_no_credential_stays_local(self, keyword_store):
        vision = make_vision(configured=False)
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_text(UNCATEGORIZED_RECEIPT, images=[b"photo"])

        vision.extract.assert_not_called()
        assert result.amount == Decimal("2.50")
        assert result.category_name is None
        assert result.confidence == ConfidenceLevel.MEDIUM
        assert result.escalation == EscalationState.LOCAL_ONLY
        assert result.source == ResultSource.LOCAL

    def test_no_images_stays_local(self, keyword_store):
        vision = make_vision()
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_text("FARMACIA COMUNALE")

        vision.extract.assert_not_called()
        assert result.category_name == "Pharmacy"
        assert result.amount is None
        assert result.escalation == EscalationState.LOCAL_ONLY

    def test_without_adapter(self, keyword_store):
        service = ReceiptExtractionService(keyword_store)
        result = service.process(RawExtractionInput())

        assert result.confidence == ConfidenceLevel.LOW
        assert result.source == ResultSource.LOCAL
        assert result.escalation == EscalationState.LOCAL_ONLY


class TestRemoteFallback:

    def test_malformed_remote_reply_degrades_to_local(self, keyword_store):
        session = MagicMock()
        session.post.return_value = MagicMock(status_code=200)
        session.post.return_value.json.return_value = {
            "content": [{"type": "text", "text": "I think this is a receipt from a bar"}]
        }
        vision = RemoteVisionAdapter(api_key="test-key", session=session)
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_text(UNCATEGORIZED_RECEIPT, images=[make_image_bytes()])

        session.post.assert_called_once()
        assert result.amount == Decimal("2.50")
        assert result.merchant_name == "BAR CENTRALE"
        assert result.source == ResultSource.LOCAL
        assert result.escalation == EscalationState.LOCAL_ONLY

    def test_remote_fills_gaps(self, keyword_store):
        vision = make_vision(RemoteExtraction(
            amount=None,
            date=date(2024, 1, 5),
            merchant_name="Bar Centrale",
            category_name="Food",
        ))
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_text(UNCATEGORIZED_RECEIPT, images=[b"photo"])

        assert result.amount == Decimal("2.50")
        assert result.date == date(2024, 1, 5)
        assert result.merchant_name == "Bar Centrale"
        assert result.category_name == "Food"
        assert result.source == ResultSource.MERGED
        assert result.confidence == ConfidenceLevel.HIGH
        assert result.escalation == EscalationState.NEEDS_REMOTE

    def test_remote_only(self, keyword_store):
        vision = make_vision(RemoteExtraction(
            amount=Decimal("18.00"),
            date=date(2024, 2, 2),
            merchant_name="Parcheggio Porto",
            category_name="Parking",
        ))
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_images([b"photo"])

        assert result.source == ResultSource.REMOTE
        assert result.amount == Decimal("18.00")
        assert result.category_name == "Parking"

    def test_remote_values_win_over_local(self, keyword_store):
        vision = make_vision(RemoteExtraction(amount=Decimal("3.50")))
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_text(UNCATEGORIZED_RECEIPT, images=[b"photo"])

        assert result.amount == Decimal("3.50")
        assert result.merchant_name == "BAR CENTRALE"
        assert result.source == ResultSource.MERGED

    def test_null_remote_category_keeps_local(self, keyword_store):
        vision = make_vision(RemoteExtraction(amount=Decimal("12.00"), category_name=None))
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_text("FARMACIA COMUNALE", images=[b"photo"])

        assert result.category_name == "Pharmacy"
        assert result.amount == Decimal("12.00")
        assert result.source == ResultSource.MERGED

    def test_learned_keyword_overrides_remote_category(self, keyword_store):
        keyword_store.record_usage("MARIO", "Food")
        keyword_store.record_usage("MARIO", "Food")
        vision = make_vision(RemoteExtraction(
            amount=Decimal("45.50"),
            merchant_name="Da Mario",
            category_name="Supermarket",
        ))
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_images([b"photo"])

        assert result.category_name == "Food"
        assert result.source == ResultSource.MERGED

    def test_invoice_pdf_uses_invoice_path(self, keyword_store):
        vision = make_vision(RemoteExtraction(amount=Decimal("1250.00"), category_name="Chandlery"))
        vision.pdf_to_images.return_value = [b"page-1", b"page-2"]
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_invoice_pdf(b"%PDF-1.4")

        vision.extract.assert_called_once_with((b"page-1", b"page-2"), DocumentKind.INVOICE)
        assert result.amount == Decimal("1250.00")
        assert result.source == ResultSource.REMOTE


class TestNeverRaises:

    def test_remote_failure_keeps_local_fields(self, keyword_store):
        vision = make_vision()
        vision.extract.side_effect = OSError("broken EXIF")
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_text(UNCATEGORIZED_RECEIPT, images=[b"x"])

        vision.extract.assert_called_once()
        assert result.amount == Decimal("2.50")
        assert result.merchant_name == "BAR CENTRALE"
        assert result.confidence == ConfidenceLevel.MEDIUM
        assert result.source == ResultSource.LOCAL
        assert result.escalation == EscalationState.LOCAL_ONLY

    def test_dotted_date_does_not_resolve_locally(self, keyword_store):
        vision = make_vision(RemoteExtraction(amount=Decimal("14.90")))
        service = ReceiptExtractionService(keyword_store, vision=vision)

        result = service.process_text(
            "FARMACIA CENTRALE\nPARAFARMACIA\nDATA: 05.01.2024", images=[b"photo"]
        )

        vision.extract.assert_called_once()
        assert result.amount == Decimal("14.90")
        assert result.date == date(2024, 1, 5)
        assert result.category_name == "Pharmacy"
        assert result.escalation == EscalationState.NEEDS_REMOTE

    def test_internal_failure_returns_low_confidence(self, keyword_store):
        parser = MagicMock()
        parser.parse.side_effect = RuntimeError("boom")
        service = ReceiptExtractionService(keyword_store, parser=parser)

        result = service.process_text("TOTALE 45,50")

        assert result.amount is None
        assert result.confidence == ConfidenceLevel.LOW
        assert result.escalation == EscalationState.LOCAL_ONLY

    @pytest.mark.parametrize("text", [None, "", "\n\n", "€€€ ,,, ..."])
    def test_noise_input(self, keyword_store, text):
        service = ReceiptExtractionService(keyword_store)
        result = service.process_text(text)
        assert result.source == ResultSource.LOCAL
