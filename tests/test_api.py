"""
Tests for the HTTP API, using FastAPI's TestClient against an in-memory engine.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from yachtexpense.config import Settings
from yachtexpense.main import create_app
from yachtexpense.services.keywords import InMemoryLearnedKeywordStore
from yachtexpense.services.vision import RemoteVisionAdapter
from yachtexpense.utils.categories import VALID_CATEGORIES

from tests.conftest import make_image_bytes


@pytest.fixture
def client():
    settings = Settings(VISION_API_KEY="", KEYWORD_STORE_BACKEND="memory", MAX_UPLOAD_MB=1)
    app = create_app(
        settings,
        learned_store=InMemoryLearnedKeywordStore(),
        vision=RemoteVisionAdapter(api_key="", session=MagicMock()),
    )
    return TestClient(app)


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_categories(self, client):
        response = client.get("/categories")
        assert response.json()["categories"] == list(VALID_CATEGORIES)


class TestScan:

    def test_scan_text(self, client):
        response = client.post("/receipts/scan", json={"text": "SUBTOTALE 40.00\nTOTALE 45.50"})

        assert response.status_code == 200
        data = response.json()
        assert Decimal(str(data["amount"])) == Decimal("45.50")
        assert data["category_name"] is None
        assert data["confidence"] == "medium"
        assert data["source"] == "local"
        assert data["escalation"] == "local_only"

    def test_scan_strong_receipt(self, client):
        response = client.post("/receipts/scan", json={
            "text": "RISTORANTE PIZZERIA\n05/01/2024\nCOPERTO 2,00\nTOTALE 45,50"
        })

        data = response.json()
        assert data["category_name"] == "Food"
        assert data["date"] == "2024-01-05"
        assert data["confidence"] == "high"
        assert data["escalation"] == "resolved"

    def test_scan_requires_text(self, client):
        assert client.post("/receipts/scan", json={}).status_code == 422


class TestUpload:

    def test_image_upload(self, client):
        response = client.post(
            "/receipts/upload",
            files={"file": ("receipt.png", make_image_bytes(), "image/png")},
            data={"text": "FARMACIA COMUNALE\nTOTALE 12,30"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["category_name"] == "Pharmacy"
        assert Decimal(str(data["amount"])) == Decimal("12.30")
        assert data["escalation"] == "local_only"

    def test_pdf_upload_uses_invoice_path(self, client):
        with patch.object(RemoteVisionAdapter, "pdf_to_images", return_value=[]) as render:
            response = client.post(
                "/receipts/upload",
                files={"file": ("invoice.pdf", b"%PDF-1.4 fake", "application/pdf")},
            )

        assert response.status_code == 200
        render.assert_called_once()
        assert response.json()["confidence"] == "low"

    def test_rejects_unsupported_type(self, client):
        response = client.post(
            "/receipts/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert "Invalid file type" in response.json()["detail"]

    def test_rejects_oversized_file(self, client):
        response = client.post(
            "/receipts/upload",
            files={"file": ("big.jpg", b"\xff" * (2 * 1024 * 1024), "image/jpeg")},
        )
        assert response.status_code == 400
        assert "too large" in response.json()["detail"]


class TestKeywords:

    def test_learn_and_list(self, client):
        response = client.post("/keywords/learn", json={
            "merchant_name": "ENI Station SRL",
            "category": "Fuel",
        })
        assert response.status_code == 200
        assert response.json()["keywords"] == ["ENI", "STATION"]

        client.post("/keywords/learn", json={"merchant_name": "ENI Station SRL", "category": "Fuel"})

        listing = client.get("/keywords").json()
        assert listing["total"] == 2
        assert {entry["keyword"]: entry["usage_count"] for entry in listing["keywords"]} == {
            "ENI": 2,
            "STATION": 2,
        }

    def test_learned_keyword_changes_category(self, client):
        text = "NAVALMARE\nIMPORTO: 80,00"
        assert client.post("/receipts/scan", json={"text": text}).json()["category_name"] is None

        client.post("/keywords/learn", json={"merchant_name": "Navalmare", "category": "Chandlery"})

        assert client.post("/receipts/scan", json={"text": text}).json()["category_name"] == "Chandlery"

    def test_list_filtered_by_category(self, client):
        client.post("/keywords/learn", json={"merchant_name": "Bar Roma", "category": "Food"})
        client.post("/keywords/learn", json={"merchant_name": "Osculati", "category": "Chandlery"})

        listing = client.get("/keywords", params={"category": "Chandlery"}).json()
        assert [entry["keyword"] for entry in listing["keywords"]] == ["OSCULATI"]

    def test_learn_unknown_category(self, client):
        response = client.post("/keywords/learn", json={"merchant_name": "Cantina", "category": "Wine"})
        assert response.status_code == 400

    def test_reset(self, client):
        client.post("/keywords/learn", json={"merchant_name": "ENI Station", "category": "Fuel"})
        client.post("/keywords/learn", json={"merchant_name": "Bar Roma", "category": "Food"})

        response = client.delete("/keywords", params={"category": "Fuel"})
        assert response.json() == {"category": "Fuel", "removed": 2}

        response = client.delete("/keywords")
        assert response.json() == {"category": None, "removed": 2}
        assert client.get("/keywords").json()["total"] == 0

    def test_reset_unknown_category(self, client):
        assert client.delete("/keywords", params={"category": "Wine"}).status_code == 400
