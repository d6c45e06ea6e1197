"""
Split Ledger - Source Package

Ingestion and reconciliation engine for two people sharing expenses.

DESIGN PRINCIPLES:
1. Money is always integer minor units (cents)
2. Untrusted input is normalized, never guessed
3. Balances are derived from history, never stored
4. One bad row never sinks a batch
5. Storage and OCR are injected collaborators
"""

__version__ = "1.0.0"
__author__ = "Split Ledger Team"

# structlog rendering is configured when the audit logger is imported
from splitledger import audit  # noqa: E402,F401
