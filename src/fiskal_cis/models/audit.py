"""Audit record model"""

import json
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from fiskal_cis.models.envelope import ResponseError
from fiskal_cis.models.invoice import FROZEN_MODEL, InvoiceNumber


class AuditStatus(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class AuditRecord(BaseModel):
    """
    One fiscalization attempt, written once after the attempt completes

    ``response_document`` is empty when no response text was obtained.
    """

    model_config = FROZEN_MODEL

    correlation_id: str = Field(..., description="Request message id")
    invoice_number: InvoiceNumber
    request_document: str = Field("", description="Signed request document")
    response_document: str = Field("", description="Raw response body")
    status: AuditStatus
    issued_identifier: Optional[str] = None
    protection_code: str = ""
    error: Optional[str] = Field(None, description="Error text or serialized error list")

    @staticmethod
    def serialize_errors(errors: List[ResponseError]) -> str:
        """Serialize authority errors the way they are stored"""
        return json.dumps([e.model_dump() for e in errors], ensure_ascii=False)
