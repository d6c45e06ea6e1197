"""Tests for receipt field extraction and the scan service."""

import pytest
from datetime import date
from decimal import Decimal

from tenacity import wait_none

from splitledger.models import (
    AnalyzedField,
    ExpenseCategory,
    LineItemAssignTo,
    LineItemAssignment,
    Party,
    ReceiptExtraction,
    SplitType,
)
from splitledger.services.ocr import (
    DocumentAnalyzer,
    ReceiptScanError,
    ReceiptScanService,
    extract_receipt,
    parse_document_analysis,
    pick_best_field,
    pick_best_total,
)


def summary_field(type_text, value_text, confidence=None, type_confidence=None):
    field = {"Type": {"Text": type_text}, "ValueDetection": {"Text": value_text}}
    if confidence is not None:
        field["ValueDetection"]["Confidence"] = confidence
    if type_confidence is not None:
        field["Type"]["Confidence"] = type_confidence
    return field


def line_item(**fields):
    return {
        "LineItemExpenseFields": [
            summary_field(type_text, value, 95) for type_text, value in fields.items()
        ],
    }


def response(summary_fields, line_items=None):
    document = {"SummaryFields": summary_fields}
    if line_items is not None:
        document["LineItemGroups"] = [{"LineItems": line_items}]
    return {"ExpenseDocuments": [document]}


def fields_of(payload):
    return parse_document_analysis(payload).first_document.summary_fields


RECEIPT = response(
    [
        summary_field("VENDOR_NAME", "Trader Joe's", 98),
        summary_field("TOTAL", "$45.67", 96),
        summary_field("INVOICE_RECEIPT_DATE", "01/15/2025", 90),
    ],
    [
        line_item(ITEM="Bananas", PRICE="1.99", QUANTITY="2"),
        line_item(ITEM="Coffee", PRICE="$8.99"),
    ],
)


class FakeAnalyzer(DocumentAnalyzer):
    """Returns a canned response, failing the first `failures` calls."""

    def __init__(self, payload=None, failures=0):
        self.payload = payload if payload is not None else RECEIPT
        self.failures = failures
        self.calls = 0

    async def analyze_expense(self, document):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("analyzer unavailable")
        return self.payload


class TestPickBestField:
    """Choosing between candidate summary fields."""

    def test_highest_confidence_wins(self):
        fields = fields_of(response([
            summary_field("TOTAL", "10.00", 60),
            summary_field("TOTAL", "12.00", 90),
        ]))
        assert pick_best_field(fields, ["TOTAL"]).value_text == "12.00"

    def test_ties_go_to_earlier_field(self):
        fields = fields_of(response([
            summary_field("TOTAL", "10.00", 80),
            summary_field("TOTAL", "12.00", 80),
        ]))
        assert pick_best_field(fields, ["TOTAL"]).value_text == "10.00"

    def test_fields_without_value_are_ignored(self):
        fields = fields_of(response([
            {"Type": {"Text": "TOTAL"}, "ValueDetection": {"Confidence": 99}},
        ]))
        assert pick_best_field(fields, ["TOTAL"]) is None

    def test_labels_are_case_insensitive(self):
        fields = [AnalyzedField.model_validate({"Type": "total", "ValueDetection": "5.00"})]
        pick = pick_best_field(fields, ["TOTAL"])
        assert pick.value_text == "5.00"
        assert pick.confidence == 0.0

    def test_total_preferred_over_higher_confidence_subtotal(self):
        fields = fields_of(response([
            summary_field("SUBTOTAL", "40.00", 99),
            summary_field("TOTAL", "43.20", 50),
        ]))
        assert pick_best_total(fields).value_text == "43.20"

    def test_subtotal_used_when_no_total(self):
        fields = fields_of(response([summary_field("SUBTOTAL", "40.00", 70)]))
        assert pick_best_total(fields).value_text == "40.00"


class TestExtractReceipt:
    """Normalized extraction from a full response."""

    def test_full_receipt(self):
        extraction = extract_receipt(RECEIPT)
        assert extraction.merchant_name == "Trader Joe's"
        assert extraction.total_amount_minor_units == 4567
        assert extraction.date == date(2025, 1, 15)
        assert extraction.confidence == pytest.approx((98 + 96 + 90) / 3 / 100)
        assert extraction.suggested_category == ExpenseCategory.GROCERIES

    def test_line_items(self):
        items = extract_receipt(RECEIPT).line_items
        assert len(items) == 2
        assert items[0].description == "Bananas"
        assert items[0].price_minor_units == 199
        assert items[0].quantity == 2
        assert items[1].price_minor_units == 899
        assert items[1].quantity is None

    def test_unit_price_fallback(self):
        extraction = extract_receipt(response([], [line_item(ITEM="Tea", UNIT_PRICE="3.50")]))
        assert extraction.line_items[0].price_minor_units == 350

    def test_missing_fields_are_none(self):
        extraction = extract_receipt(response([summary_field("TOTAL", "12.00", 80)]))
        assert extraction.merchant_name is None
        assert extraction.date is None
        assert extraction.confidence == pytest.approx(0.8)

    def test_non_positive_total_is_dropped(self):
        extraction = extract_receipt(response([summary_field("TOTAL", "0.00", 80)]))
        assert extraction.total_amount_minor_units is None

    def test_nested_type_label(self):
        """Labels under Type.TextDetection are read like Type.Text."""
        extraction = extract_receipt({
            "ExpenseDocuments": [{
                "SummaryFields": [{
                    "Type": {"TextDetection": {"Text": "TOTAL"}, "Confidence": 95},
                    "ValueDetection": {"Text": "$9.99", "Confidence": 95},
                }],
            }],
        })
        assert extraction.total_amount_minor_units == 999

    def test_direct_type_label_wins_over_nested(self):
        fields = fields_of(response([{
            "Type": {"Text": "SUBTOTAL", "TextDetection": {"Text": "TOTAL"}},
            "ValueDetection": {"Text": "5.00", "Confidence": 90},
        }]))
        assert fields[0].type_text == "SUBTOTAL"

    @pytest.mark.parametrize("payload", [None, "text", [], {}, {"ExpenseDocuments": "x"}])
    def test_unusable_responses_are_empty(self, payload):
        extraction = extract_receipt(payload)
        assert extraction.is_empty
        assert extraction.confidence == 0.0


class TestReceiptScanService:
    """Scanning through an injected analyzer."""

    @pytest.mark.asyncio
    async def test_scan(self):
        service = ReceiptScanService(FakeAnalyzer(), retry_wait=wait_none())
        extraction = await service.scan(b"image-bytes")
        assert extraction.total_amount_minor_units == 4567

    @pytest.mark.asyncio
    async def test_scan_retries_transient_failures(self):
        analyzer = FakeAnalyzer(failures=2)
        service = ReceiptScanService(analyzer, max_attempts=3, retry_wait=wait_none())
        extraction = await service.scan(b"image-bytes")
        assert analyzer.calls == 3
        assert extraction.merchant_name == "Trader Joe's"

    @pytest.mark.asyncio
    async def test_scan_gives_up(self):
        analyzer = FakeAnalyzer(failures=5)
        service = ReceiptScanService(analyzer, max_attempts=2, retry_wait=wait_none())
        with pytest.raises(ReceiptScanError):
            await service.scan(b"image-bytes")
        assert analyzer.calls == 2

    @pytest.mark.asyncio
    async def test_empty_document_is_rejected(self):
        service = ReceiptScanService(FakeAnalyzer(), retry_wait=wait_none())
        with pytest.raises(ReceiptScanError):
            await service.scan(b"")

    def test_should_apply(self):
        service = ReceiptScanService(FakeAnalyzer(), low_confidence_threshold=0.7)

        can_apply, _ = service.should_apply(ReceiptExtraction())
        assert can_apply is False

        can_apply, message = service.should_apply(
            ReceiptExtraction(total_amount_minor_units=100, confidence=0.4)
        )
        assert can_apply is True
        assert "low" in message

        can_apply, message = service.should_apply(
            ReceiptExtraction(total_amount_minor_units=100, confidence=0.9)
        )
        assert can_apply is True
        assert "merchant" in message

    def test_to_expense_input_equal_split(self):
        service = ReceiptScanService(FakeAnalyzer())
        expense = service.to_expense_input(extract_receipt(RECEIPT), paid_by=Party.PARTY_B)
        assert expense.description == "Trader Joe's"
        assert expense.amount_minor_units == 4567
        assert expense.split_type == SplitType.EQUAL
        assert expense.category == ExpenseCategory.GROCERIES

    def test_to_expense_input_with_assignments(self):
        service = ReceiptScanService(FakeAnalyzer())
        expense = service.to_expense_input(
            extract_receipt(RECEIPT),
            paid_by=Party.PARTY_A,
            assignments=[
                LineItemAssignment(price_minor_units=300, assign_to=LineItemAssignTo.PARTY_A),
                LineItemAssignment(price_minor_units=100, assign_to=LineItemAssignTo.PARTY_B),
            ],
        )
        assert expense.split_type == SplitType.PERCENTAGE
        assert expense.party_a_share == Decimal("75")
        assert expense.party_b_share == Decimal("25")

    def test_to_expense_input_requires_total(self):
        service = ReceiptScanService(FakeAnalyzer())
        with pytest.raises(ReceiptScanError):
            service.to_expense_input(
                ReceiptExtraction(merchant_name="Cafe", date=date(2025, 1, 1)),
                paid_by=Party.PARTY_A,
            )

    def test_explicit_values_win(self):
        service = ReceiptScanService(FakeAnalyzer())
        expense = service.to_expense_input(
            ReceiptExtraction(total_amount_minor_units=500),
            paid_by=Party.PARTY_A,
            description="Lunch",
            category=ExpenseCategory.FOOD,
            expense_date=date(2025, 2, 1),
        )
        assert expense.description == "Lunch"
        assert expense.category == ExpenseCategory.FOOD
        assert expense.date == date(2025, 2, 1)
