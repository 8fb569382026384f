"""
permaweave Constants

Protocol values shared by every reader and writer of a contract.

NOTE: Tag names and the App-Name / App-Version values are part of the
interaction encoding. Changing them makes new interactions invisible to
existing readers.
"""

from typing import Final

# =============================================================================
# INTERACTION PROTOCOL [PROTOCOL - DO NOT CHANGE]
# =============================================================================

APP_NAME: Final[str] = "SmartWeaveAction"
APP_VERSION: Final[str] = "0.3.0"

TAG_APP_NAME: Final[str] = "App-Name"
TAG_APP_VERSION: Final[str] = "App-Version"
TAG_CONTRACT: Final[str] = "Contract"
TAG_INPUT: Final[str] = "Input"

# Contract definition tags
TAG_CONTRACT_SRC: Final[str] = "Contract-Src"
TAG_INIT_STATE: Final[str] = "Init-State"
TAG_INIT_STATE_TX: Final[str] = "Init-State-TX"
TAG_MIN_FEE: Final[str] = "Min-Fee"

# Random data attached to interactions so identical inputs get distinct ids
INTERACTION_NONCE_DIGITS: Final[int] = 4

# =============================================================================
# LEDGER UNITS
# =============================================================================

WINSTON_DECIMALS: Final[int] = 12
WINSTON_PER_AR: Final[int] = 10**WINSTON_DECIMALS

TRANSACTION_FORMAT: Final[int] = 2

# Post statuses the gateway uses for an accepted transaction (208: already known)
POST_ACCEPTED_STATUSES: Final[frozenset[int]] = frozenset({200, 208})

# =============================================================================
# SANDBOX
# =============================================================================

CONTRACT_ENTRY_POINT: Final[str] = "handle"
CONTRACT_GLOBAL_NAME: Final[str] = "SmartWeave"
