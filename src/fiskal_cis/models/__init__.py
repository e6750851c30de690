"""Models module initialization"""

from fiskal_cis.models.invoice import (
    Invoice,
    InvoiceNumber,
    TaxItem,
    OtherTax,
    Fee,
    SequenceMode,
    PaymentMethod,
)
from fiskal_cis.models.envelope import (
    RequestEnvelope,
    ResponseError,
    FiscalizationResponse,
    FiscalizationResult,
)
from fiskal_cis.models.audit import AuditRecord, AuditStatus

__all__ = [
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
