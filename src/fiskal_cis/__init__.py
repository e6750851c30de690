"""
Fiskalizacija CIS client for Python

Main entry point for the package
"""

from fiskal_cis.exceptions import (
    FiskalError,
    FiskalErrorCategory,
    ValidationError,
    ConfigError,
    KeystoreError,
    KeystoreErrorKind,
    SignatureError,
    TransportError,
    TransportErrorKind,
    ProtocolFault,
    ResponseValidationError,
)

# Audit
from fiskal_cis.audit import AuditSink, JsonLinesAuditSink, MemoryAuditSink

# Transport
from fiskal_cis.client import SoapTransport, SoapAuditEntry

# Configuration
from fiskal_cis.config import (
    FiskalConfig,
    FiskalEnvironment,
    ConfigLoader,
    ConfigValidator,
    CIS_ENDPOINTS,
    ENV_VAR_MAPPING,
    ConfigDefaults,
)

# Cryptography
from fiskal_cis.crypto import (
    Credential,
    KeystoreCredential,
    ProtectionCodeGenerator,
    SignedDocumentProducer,
)

# Documents
from fiskal_cis.documents import InvoiceDocumentBuilder, ResponseInterpreter

# Models
from fiskal_cis.models import (
    Invoice,
    InvoiceNumber,
    TaxItem,
    OtherTax,
    Fee,
    SequenceMode,
    PaymentMethod,
    RequestEnvelope,
    ResponseError,
    FiscalizationResponse,
    FiscalizationResult,
    AuditRecord,
    AuditStatus,
)

# Service
from fiskal_cis.services import FiscalizationService

__version__ = "0.1.0"

__all__ = [
    # Service
    "FiscalizationService",
    # Exceptions
    "FiskalError",
    "FiskalErrorCategory",
    "ValidationError",
    "ConfigError",
    "KeystoreError",
    "KeystoreErrorKind",
    "SignatureError",
    "TransportError",
    "TransportErrorKind",
    "ProtocolFault",
    "ResponseValidationError",
    # Audit
    "AuditSink",
    "JsonLinesAuditSink",
    "MemoryAuditSink",
    # Transport
    "SoapTransport",
    "SoapAuditEntry",
    # Configuration
    "FiskalConfig",
    "FiskalEnvironment",
    "ConfigLoader",
    "ConfigValidator",
    "CIS_ENDPOINTS",
    "ENV_VAR_MAPPING",
    "ConfigDefaults",
    # Cryptography
    "Credential",
    "KeystoreCredential",
    "ProtectionCodeGenerator",
    "SignedDocumentProducer",
    # Documents
    "InvoiceDocumentBuilder",
    "ResponseInterpreter",
    # Models
    "Invoice",
    "InvoiceNumber",
    "TaxItem",
    "OtherTax",
    "Fee",
    "SequenceMode",
    "PaymentMethod",
    "RequestEnvelope",
    "ResponseError",
    "FiscalizationResponse",
    "FiscalizationResult",
    "AuditRecord",
    "AuditStatus",
]
