"""Parsers for bank statement files."""

from .ofx_parser import OFXStatementParser, bank_name_for

__all__ = ["OFXStatementParser", "bank_name_for"]
