"""Request and response models"""

from typing import List, Optional

from pydantic import BaseModel, Field

from fiskal_cis.models.invoice import FROZEN_MODEL, Invoice


class RequestEnvelope(BaseModel):
    """
    One invoice request (RacunZahtjev)

    The message id doubles as the signed element's ``Id`` attribute and
    as the audit correlation id.
    """

    model_config = FROZEN_MODEL

    message_id: str = Field(..., description="Message UUID (IdPoruke)")
    timestamp: str = Field(..., description="Request timestamp (DatumVrijeme)")
    invoice: Invoice = Field(..., description="Invoice with protection code set")


class ResponseError(BaseModel):
    """Authority-reported error (Greska)"""

    model_config = FROZEN_MODEL

    code: str = Field(..., description="Error code (SifraGreske)")
    message: str = Field(..., description="Error message (PorukaGreske)")


class FiscalizationResponse(BaseModel):
    """Interpreted authority response (RacunOdgovor)"""

    model_config = FROZEN_MODEL

    issued_identifier: Optional[str] = Field(None, description="JIR")
    message_id: Optional[str] = Field(None, description="Echoed message id")
    timestamp: Optional[str] = Field(None, description="Response timestamp")
    errors: List[ResponseError] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class FiscalizationResult(BaseModel):
    """Successful fiscalization outcome returned to the caller"""

    model_config = FROZEN_MODEL

    issued_identifier: str = Field(..., description="JIR")
    message_id: str = Field(..., description="Request message id")
    timestamp: Optional[str] = Field(None, description="Response timestamp")
    protection_code: str = Field(..., description="ZKI sent with the invoice")
