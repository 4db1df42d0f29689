"""
Bookkeeper - Source Package

A small-business bookkeeping tool that records invoices and expenses
and derives dashboard statistics from them.

DESIGN PRINCIPLES:
1. Validate first, persist second
2. Fail early, fail visibly
3. No silent corrections
4. Money is Decimal until it leaves the system
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Bookkeeper Team"
