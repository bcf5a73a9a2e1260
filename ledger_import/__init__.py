"""Spreadsheet ingestion & normalization pipeline for ledger imports."""

__version__ = "0.3.0"
