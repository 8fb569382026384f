"""
permaweave Core Module

Ledger-facing building blocks:
- Transaction envelope and tag codec
- Reference secp256k1 wallet
- Ledger client and state provider interfaces
- Exceptions, configuration and logging
"""

__all__ = []
