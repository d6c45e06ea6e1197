"""OCR services package."""

from splitledger.services.ocr.receipt_extractor import (
    extract_line_items,
    extract_receipt,
    parse_document_analysis,
    pick_best_field,
    pick_best_total,
)
from splitledger.services.ocr.scan_service import (
    DocumentAnalyzer,
    ReceiptScanError,
    ReceiptScanService,
)

__all__ = [
    "DocumentAnalyzer",
    "ReceiptScanError",
    "ReceiptScanService",
    "extract_line_items",
    "extract_receipt",
    "parse_document_analysis",
    "pick_best_field",
    "pick_best_total",
]
