"""
Receipt Field Extraction

Turns the expense-analysis (OCR) service response into normalized
receipt fields.

This module handles:
1. Lenient parsing of the service response (we do not own its schema)
2. Picking the best-confidence field for each wanted label
3. Normalizing money and dates
4. Extracting line items

CRITICAL: Extraction NEVER fabricates a value. A field the service did
not find is None. Low confidence is for the user to review, not an error.
Nothing in this module raises on bad input.
"""

import math
from typing import Any, Iterable, Optional

import structlog
from pydantic import ValidationError

from splitledger.categories import suggest_from_merchant
from splitledger.models.receipt import (
    AnalyzedField,
    AnalyzedLineItem,
    DocumentAnalysis,
    ReceiptExtraction,
    ReceiptLineItem,
    SummaryFieldPick,
)
from splitledger.normalization import money_to_minor_units, parse_calendar_date


logger = structlog.get_logger(__name__)


# Summary field labels, in the service's vocabulary.
TOTAL_TYPES = ("TOTAL", "AMOUNT_DUE")
SUBTOTAL_TYPES = ("SUBTOTAL",)
MERCHANT_TYPES = ("VENDOR_NAME",)
DATE_TYPES = ("INVOICE_RECEIPT_DATE", "TRANSACTION_DATE")

# Line item sub-field labels.
ITEM_DESCRIPTION_TYPES = ("ITEM",)
ITEM_PRICE_TYPES = ("PRICE",)
ITEM_UNIT_PRICE_TYPES = ("UNIT_PRICE",)
ITEM_QUANTITY_TYPES = ("QUANTITY",)


def parse_document_analysis(payload: Any) -> DocumentAnalysis:
    """
    Parse a raw service response into a DocumentAnalysis.

    Anything unusable degrades to an empty analysis.
    """
    if isinstance(payload, DocumentAnalysis):
        return payload
    if not isinstance(payload, dict):
        return DocumentAnalysis()
    try:
        return DocumentAnalysis.model_validate(payload)
    except ValidationError as e:
        logger.warning("document_analysis_unparseable", error_count=e.error_count())
        return DocumentAnalysis()


def pick_best_field(
    fields: Iterable[AnalyzedField],
    wanted_type_labels: Iterable[str],
) -> Optional[SummaryFieldPick]:
    """
    Pick the highest-confidence field whose label is wanted.

    Fields without a value are ignored. Ties go to the earlier field.
    """
    wanted = {label.upper() for label in wanted_type_labels}
    best: Optional[SummaryFieldPick] = None

    for field in fields:
        type_text = field.type_text
        value_text = field.value_text
        if not type_text or type_text not in wanted or not value_text:
            continue
        if best is None or field.confidence > best.confidence:
            best = SummaryFieldPick(
                type_text=type_text,
                value_text=value_text,
                confidence=field.confidence,
            )

    return best


def pick_best_total(fields: Iterable[AnalyzedField]) -> Optional[SummaryFieldPick]:
    """
    Pick the amount actually owed.

    A subtotal excludes tax, so it is only used when the receipt has no
    total-type field at all, whatever the confidences are.
    """
    fields = list(fields)
    return pick_best_field(fields, TOTAL_TYPES) or pick_best_field(fields, SUBTOTAL_TYPES)


def _quantity_from_text(text: Optional[str]) -> Optional[int]:
    """Floor to a non-negative integer; anything else is None."""
    if not text:
        return None
    try:
        value = float(text.strip().replace(",", ""))
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return math.floor(value)


def _extract_line_item(item: AnalyzedLineItem) -> Optional[ReceiptLineItem]:
    fields = item.expense_fields

    description_field = pick_best_field(fields, ITEM_DESCRIPTION_TYPES)
    price_field = (
        pick_best_field(fields, ITEM_PRICE_TYPES)
        or pick_best_field(fields, ITEM_UNIT_PRICE_TYPES)
    )
    quantity_field = pick_best_field(fields, ITEM_QUANTITY_TYPES)

    description = description_field.value_text if description_field else None
    price = money_to_minor_units(price_field.value_text) if price_field else None

    if description is None and price is None:
        return None

    return ReceiptLineItem(
        description=description,
        price_minor_units=price,
        quantity=_quantity_from_text(quantity_field.value_text) if quantity_field else None,
    )


def extract_line_items(analysis: DocumentAnalysis) -> list[ReceiptLineItem]:
    """Extract line items of the first document, skipping unusable ones."""
    document = analysis.first_document
    if document is None:
        return []

    items = []
    for group in document.line_item_groups:
        for item in group.line_items:
            extracted = _extract_line_item(item)
            if extracted is not None:
                items.append(extracted)
    return items


def extract_receipt(payload: Any) -> ReceiptExtraction:
    """
    Extract normalized receipt fields from a service response.

    Confidence is the mean confidence of whichever of total, merchant and
    date were found, scaled to 0-1. Fields that were not found do not
    lower it: receipts often omit one field without being unreadable.
    """
    analysis = parse_document_analysis(payload)
    document = analysis.first_document
    if document is None:
        return ReceiptExtraction()

    summary = document.summary_fields
    total = pick_best_total(summary)
    merchant = pick_best_field(summary, MERCHANT_TYPES)
    date_field = pick_best_field(summary, DATE_TYPES)

    total_minor_units = money_to_minor_units(total.value_text) if total else None
    if total_minor_units is not None and total_minor_units <= 0:
        total_minor_units = None

    merchant_name = merchant.value_text.strip() if merchant else None
    receipt_date = parse_calendar_date(date_field.value_text) if date_field else None

    found = [pick for pick in (total, merchant, date_field) if pick is not None]
    if found:
        confidence = sum(pick.confidence for pick in found) / len(found) / 100
    else:
        confidence = 0.0

    return ReceiptExtraction(
        merchant_name=merchant_name or None,
        total_amount_minor_units=total_minor_units,
        date=receipt_date,
        confidence=max(0.0, min(1.0, confidence)),
        line_items=extract_line_items(analysis),
        suggested_category=suggest_from_merchant(merchant_name),
    )
