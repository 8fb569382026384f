"""
permaweave SDK

HTTP gateway implementation of the ledger client interface.
"""

from .gateway_client import GatewayClient
from .http_client import HTTPClient

__all__ = [
    "GatewayClient",
    "HTTPClient",
]
