"""
privatebonds Ledger - the public entry points of one instrument.
"""

from privatebonds.ledger.ledger import BondLedger

__all__ = ["BondLedger"]
