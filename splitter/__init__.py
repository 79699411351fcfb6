"""
splitter/ - Profit distribution.

Modules:
- funds_splitter: weighted share table and proportional split
"""

from splitter.funds_splitter import FundsSplitter, validate_shares

__all__ = [
    "FundsSplitter",
    "validate_shares",
]
