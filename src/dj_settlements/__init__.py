"""
Seller settlement and payout ledger for Django marketplaces.
"""

__version__ = "0.1.0"
