"""
Receipt Scan Service

DESIGN DECISION: The expense-analysis (OCR) service is an injected
collaborator behind the DocumentAnalyzer interface. This service:
1. Sends the receipt document to the analyzer (with retries)
2. Extracts and normalizes fields
3. Decides whether the result is usable and how loudly to warn
4. Turns a confirmed extraction into an expense prefill

IMPORTANT BOUNDARIES:
1. Partial results are fine - missing fields are None, never invented
2. Low confidence means "ask the user", not "reject"
3. Only a failing analyzer, or a prefill without the required values,
   raises ReceiptScanError
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Iterable, Mapping, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
)

from splitledger.config import get_settings
from splitledger.ledger.splits import split_from_line_items
from splitledger.models.ledger import (
    ExpenseCategory,
    ExpenseInput,
    LineItemAssignment,
    Party,
    SplitType,
)
from splitledger.models.receipt import ReceiptExtraction
from splitledger.services.ocr.receipt_extractor import extract_receipt


logger = structlog.get_logger(__name__)


class ReceiptScanError(Exception):
    """Receipt could not be scanned or applied."""
    pass


class DocumentAnalyzer(ABC):
    """
    External expense-analysis (OCR) service.

    Implementations return the raw nested response:
        {"ExpenseDocuments": [{"SummaryFields": [...], "LineItemGroups": [...]}]}
    """

    @abstractmethod
    async def analyze_expense(self, document: bytes) -> Mapping[str, Any]:
        pass


class ReceiptScanService:
    """Scan receipts through an injected DocumentAnalyzer."""

    def __init__(
        self,
        analyzer: DocumentAnalyzer,
        max_attempts: Optional[int] = None,
        retry_wait=None,
        low_confidence_threshold: Optional[float] = None,
    ):
        settings = get_settings().receipt
        self._analyzer = analyzer
        self._max_attempts = max_attempts or settings.analyzer_max_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)
        self._threshold = (
            low_confidence_threshold
            if low_confidence_threshold is not None
            else settings.low_confidence_threshold
        )

    @property
    def low_confidence_threshold(self) -> float:
        return self._threshold

    async def _analyze(self, document: bytes) -> Mapping[str, Any]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._retry_wait,
            reraise=True,
        ):
            with attempt:
                return await self._analyzer.analyze_expense(document)

    async def scan(self, document: bytes) -> ReceiptExtraction:
        """
        Analyze a receipt document and extract its fields.

        Raises:
            ReceiptScanError: If the analyzer keeps failing
        """
        if not document:
            raise ReceiptScanError("Receipt document is empty")

        try:
            response = await self._analyze(document)
        except Exception as e:
            logger.error("receipt_analysis_failed", error=str(e), attempts=self._max_attempts)
            raise ReceiptScanError(f"Failed to analyze receipt: {e}") from e

        extraction = extract_receipt(response)
        logger.info(
            "receipt_extracted",
            confidence=extraction.confidence,
            has_total=extraction.total_amount_minor_units is not None,
            has_merchant=extraction.merchant_name is not None,
            has_date=extraction.date is not None,
            line_items=len(extraction.line_items),
        )
        return extraction

    def should_apply(self, extraction: ReceiptExtraction) -> tuple[bool, str]:
        """
        Determine if an extraction is worth showing as a prefill.

        Returns: (can_apply, message_for_user)
        """
        if extraction.is_empty:
            return False, (
                "Could not read anything useful from this receipt. "
                "Please try a clearer photo or enter the expense manually."
            )

        missing = []
        if extraction.total_amount_minor_units is None:
            missing.append("total")
        if extraction.merchant_name is None:
            missing.append("merchant")
        if extraction.date is None:
            missing.append("date")

        if extraction.needs_confirmation(self._threshold):
            return True, (
                f"Scan confidence ({extraction.confidence:.0%}) is low. "
                "Please check every field before saving."
            )

        if missing:
            return True, (
                f"Some fields were not found ({', '.join(missing)}). "
                "Please fill them in before saving."
            )

        return True, "Receipt read successfully. Please review and confirm."

    def to_expense_input(
        self,
        extraction: ReceiptExtraction,
        paid_by: Party,
        description: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
        expense_date: Optional[date] = None,
        assignments: Optional[Iterable[LineItemAssignment]] = None,
        note: Optional[str] = None,
    ) -> ExpenseInput:
        """
        Build an expense from a (user-confirmed) extraction.

        Values given explicitly win over extracted ones. When line-item
        assignments are given, the split follows them as a percentage split.

        Raises:
            ReceiptScanError: If amount, date or description is missing
        """
        description = (description or extraction.merchant_name or "").strip()
        expense_date = expense_date or extraction.date
        amount = extraction.total_amount_minor_units

        missing = [
            name for name, value in (
                ("amount", amount),
                ("date", expense_date),
                ("description", description),
            )
            if not value
        ]
        if missing:
            raise ReceiptScanError(f"Receipt is missing: {', '.join(missing)}")

        split_type = SplitType.EQUAL
        party_a_share = 50
        party_b_share = 50
        if assignments is not None:
            split = split_from_line_items(assignments)
            if split.basis_minor_units > 0:
                split_type = SplitType.PERCENTAGE
                party_a_share = split.party_a_percent
                party_b_share = split.party_b_percent

        return ExpenseInput(
            description=description[:200],
            amount_minor_units=amount,
            paid_by=paid_by,
            split_type=split_type,
            party_a_share=party_a_share,
            party_b_share=party_b_share,
            category=category or extraction.suggested_category or ExpenseCategory.OTHER,
            date=expense_date,
            note=note,
        )
