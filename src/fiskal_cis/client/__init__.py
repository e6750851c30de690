"""
Client module
"""

from fiskal_cis.client.soap_client import (
    SoapTransport,
    SoapAuditEntry,
    wrap_in_envelope,
    DEFAULT_TIMEOUT,
)

__all__ = [
    "SoapTransport",
    "SoapAuditEntry",
    "wrap_in_envelope",
    "DEFAULT_TIMEOUT",
]
