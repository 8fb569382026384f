"""
permaweave - Ledger-resident contracts for Python

Derives the current state of a ledger contract by replaying its interaction
transactions through the contract's own transition function, executed
off-chain in a restricted sandbox.

Main Components:
- Core: transactions, tags, wallets, ledger client interface, configuration
- Sandbox: AST validation and RestrictedPython execution environment
- Contracts: loading, interaction building, dry runs, reads and writes
- SDK: HTTP gateway client implementing the ledger interface
"""

__version__ = "0.3.0"
__author__ = "permaweave developers"

__all__ = []
