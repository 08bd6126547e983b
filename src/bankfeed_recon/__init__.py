"""Bank feed reconciliation: match bank statement lines to receipts and expenses."""

__version__ = "0.1.0"
