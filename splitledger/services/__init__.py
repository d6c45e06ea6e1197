"""External service integrations (storage, OCR)."""
