"""MedRegistry - patient and disease registry on a transactional key-value ledger."""

__version__ = "1.0.0"
