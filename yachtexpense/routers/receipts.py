"""
Receipts API router: extract an expense record from OCR text or an upload.
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from typing import Optional
import logging

from yachtexpense.config import Settings
from yachtexpense.dependencies import get_engine, get_settings
from yachtexpense.models.receipt import ReceiptExtractionResponse, ScanRequest
from yachtexpense.services.extraction import ReceiptExtractionService

router = APIRouter(prefix="/receipts", tags=["receipts"])
logger = logging.getLogger(__name__)

IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png"}
PDF_TYPES = {"application/pdf"}


@router.post("/scan", response_model=ReceiptExtractionResponse)
async def scan_receipt(
    request: ScanRequest,
    engine: ReceiptExtractionService = Depends(get_engine),
):
    """
    Extract amount, date, merchant and category from OCR text.

    Text-only scans never reach the remote vision service; the result is
    the local extraction at its own confidence.
    """
    result = await run_in_threadpool(engine.process_text, request.text)
    return ReceiptExtractionResponse.from_result(result)


@router.post("/upload", response_model=ReceiptExtractionResponse)
async def upload_receipt(
    file: UploadFile = File(...),
    text: Optional[str] = Form(None),
    engine: ReceiptExtractionService = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    """
    Extract an expense record from an uploaded receipt photo or PDF invoice.

    Args:
        file: JPEG/PNG receipt photo or PDF invoice
        text: Optional OCR text recognized on the device

    Returns:
        Extraction result; images use the receipt path, PDFs the invoice path
    """
    content_type = (file.content_type or "").lower()
    if content_type not in IMAGE_TYPES and content_type not in PDF_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {file.content_type}. Allowed: PDF, JPG, PNG"
        )

    file_data = await file.read()
    file_size_mb = len(file_data) / (1024 * 1024)

    if file_size_mb > settings.MAX_UPLOAD_MB:
        raise HTTPException(
            status_code=400,
            detail=f"File too large: {file_size_mb:.2f}MB. Maximum: {settings.MAX_UPLOAD_MB}MB"
        )

    if not file_data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    logger.info("Receipt upload received", extra={
        "upload_name": file.filename,
        "content_type": content_type,
        "size_bytes": len(file_data)
    })

    if content_type in PDF_TYPES:
        result = await run_in_threadpool(engine.process_invoice_pdf, file_data, text)
    else:
        result = await run_in_threadpool(engine.process_images, [file_data], text)

    return ReceiptExtractionResponse.from_result(result)
