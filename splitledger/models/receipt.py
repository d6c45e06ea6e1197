"""
Receipt Models for Split Ledger

Two groups of models live here:

1. DOCUMENT ANALYSIS INPUT - the nested structure returned by the external
   expense-analysis (OCR) service:
       {ExpenseDocuments: [{SummaryFields: [...], LineItemGroups: [...]}]}
   We do not control this schema. Every part is optional, and malformed
   parts are coerced to "absent" instead of failing the whole document.

2. EXTRACTION OUTPUT - what we actually found, already normalized to
   minor units and calendar dates.

CRITICAL: Extraction output is PROPOSED data. Low confidence means the
user must confirm it, not that it is an error.
"""

import math
from datetime import date as CalendarDate
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from splitledger.models.ledger import ExpenseCategory


def _list_of_dicts(value: Any) -> list:
    """Keep only mapping entries; anything that is not a list becomes []."""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]


def _flatten_text_detection(detection: dict) -> dict:
    """
    Some responses nest the label as {"TextDetection": {"Text": ...}}.
    Lift it to the top level when there is no direct Text.
    """
    if detection.get("Text") is not None:
        return detection
    nested = detection.get("TextDetection")
    if not isinstance(nested, dict) or nested.get("Text") is None:
        return detection
    flattened = dict(detection)
    flattened["Text"] = nested["Text"]
    if flattened.get("Confidence") is None and nested.get("Confidence") is not None:
        flattened["Confidence"] = nested["Confidence"]
    return flattened


# =============================================================================
# DOCUMENT ANALYSIS INPUT
# =============================================================================

class FieldDetection(BaseModel):
    """A detected piece of text with the service's confidence (0-100)."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    text: Optional[str] = Field(default=None, alias="Text")
    confidence: Optional[float] = Field(default=None, alias="Confidence")

    @field_validator('text', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if isinstance(v, (str, int, float)):
            text = str(v).strip()
            return text or None
        return None

    @field_validator('confidence', mode='before')
    @classmethod
    def coerce_confidence(cls, v: Any) -> Optional[float]:
        try:
            number = float(v)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None


class AnalyzedField(BaseModel):
    """
    One labelled field (summary field or line-item sub-field).

    Type carries the normalized label (e.g. TOTAL, VENDOR_NAME),
    ValueDetection carries the value as printed on the receipt.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: Optional[FieldDetection] = Field(default=None, alias="Type")
    label_detection: Optional[FieldDetection] = Field(default=None, alias="LabelDetection")
    value_detection: Optional[FieldDetection] = Field(default=None, alias="ValueDetection")

    @model_validator(mode='before')
    @classmethod
    def coerce_detections(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return {}
        cleaned = dict(data)
        for key in ("Type", "LabelDetection", "ValueDetection"):
            value = cleaned.get(key)
            if isinstance(value, str):
                cleaned[key] = {"Text": value}
            elif isinstance(value, dict):
                cleaned[key] = _flatten_text_detection(value)
            elif value is not None:
                cleaned[key] = None
        return cleaned

    @property
    def type_text(self) -> Optional[str]:
        if self.type is None or self.type.text is None:
            return None
        return self.type.text.upper()

    @property
    def value_text(self) -> Optional[str]:
        if self.value_detection is None:
            return None
        return self.value_detection.text

    @property
    def confidence(self) -> float:
        """Value confidence, falling back to the type's, else 0."""
        if self.value_detection is not None and self.value_detection.confidence is not None:
            return self.value_detection.confidence
        if self.type is not None and self.type.confidence is not None:
            return self.type.confidence
        return 0.0


class AnalyzedLineItem(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    expense_fields: list[AnalyzedField] = Field(
        default_factory=list,
        alias="LineItemExpenseFields"
    )

    @field_validator('expense_fields', mode='before')
    @classmethod
    def coerce_fields(cls, v: Any) -> list:
        return _list_of_dicts(v)


class LineItemGroup(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    line_items: list[AnalyzedLineItem] = Field(default_factory=list, alias="LineItems")

    @field_validator('line_items', mode='before')
    @classmethod
    def coerce_items(cls, v: Any) -> list:
        return _list_of_dicts(v)


class ExpenseDocument(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    summary_fields: list[AnalyzedField] = Field(default_factory=list, alias="SummaryFields")
    line_item_groups: list[LineItemGroup] = Field(default_factory=list, alias="LineItemGroups")

    @field_validator('summary_fields', 'line_item_groups', mode='before')
    @classmethod
    def coerce_lists(cls, v: Any) -> list:
        return _list_of_dicts(v)


class DocumentAnalysis(BaseModel):
    """Top-level response of the expense-analysis service."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    expense_documents: list[ExpenseDocument] = Field(
        default_factory=list,
        alias="ExpenseDocuments"
    )

    @field_validator('expense_documents', mode='before')
    @classmethod
    def coerce_documents(cls, v: Any) -> list:
        return _list_of_dicts(v)

    @property
    def first_document(self) -> Optional[ExpenseDocument]:
        return self.expense_documents[0] if self.expense_documents else None


# =============================================================================
# EXTRACTION OUTPUT
# =============================================================================

class SummaryFieldPick(BaseModel):
    """The best-confidence field found for a set of wanted labels."""

    type_text: str
    value_text: str
    confidence: float = Field(
        ...,
        description="Service confidence, 0-100"
    )


class ReceiptLineItem(BaseModel):
    """A single purchased item, as far as it could be read."""

    description: Optional[str] = None
    price_minor_units: Optional[int] = None
    quantity: Optional[int] = Field(default=None, ge=0)


class ReceiptExtraction(BaseModel):
    """
    Normalized receipt fields.

    Absence is always None - the extractor never fabricates a value.
    """

    merchant_name: Optional[str] = None
    total_amount_minor_units: Optional[int] = None
    date: Optional[CalendarDate] = None
    confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Mean confidence of the fields that were found (0-1)"
    )
    line_items: list[ReceiptLineItem] = Field(default_factory=list)
    suggested_category: Optional[ExpenseCategory] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.merchant_name is None
            and self.total_amount_minor_units is None
            and self.date is None
            and not self.line_items
        )

    def needs_confirmation(self, threshold: float = 0.7) -> bool:
        """Low confidence means a human has to look at it."""
        return self.confidence < threshold
