"""Invoice models"""

import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from fiskal_cis.utils.formatting import AMOUNT_PATTERN, TIMESTAMP_PATTERN, normalize_amount

OIB_PATTERN = re.compile(r"^\d{11}$")
PROTECTION_CODE_PATTERN = re.compile(r"^[a-f0-9]{32}$")

FROZEN_MODEL = {
    "frozen": True,
    "str_strip_whitespace": True,
}


def _check_amount(value: str) -> str:
    normalized = normalize_amount(value)
    if not AMOUNT_PATTERN.match(normalized):
        raise ValueError(f"'{value}' is not a valid amount")
    return normalized


class SequenceMode(str, Enum):
    """How invoice numbers are sequenced (OznSlijed)"""
    BY_BUSINESS_SPACE = "P"
    BY_DEVICE = "N"


class PaymentMethod(str, Enum):
    """Payment method codes (NacinPlac)"""
    CASH = "G"
    CARD = "K"
    CHEQUE = "C"
    TRANSFER = "T"
    OTHER = "O"


class InvoiceNumber(BaseModel):
    """Invoice number triple (BrRac)"""

    model_config = FROZEN_MODEL

    number: str = Field(..., description="Sequential invoice number", min_length=1)
    business_space: str = Field(..., description="Business space label", min_length=1)
    payment_device: str = Field(..., description="Payment device label", min_length=1)

    def as_tuple(self) -> tuple:
        return (self.number, self.business_space, self.payment_device)


class TaxItem(BaseModel):
    """VAT or consumption tax line (Porez)"""

    model_config = FROZEN_MODEL

    rate: str = Field(..., description="Tax rate, e.g. 25.00")
    base: str = Field(..., description="Taxable base amount")
    amount: str = Field(..., description="Tax amount")

    @field_validator("rate", "base", "amount", mode="before")
    @classmethod
    def validate_amount(cls, v) -> str:
        return _check_amount(v)


class OtherTax(TaxItem):
    """Other tax line (OstaliPor/Porez), named"""

    name: str = Field(..., description="Tax name", min_length=1, max_length=100)


class Fee(BaseModel):
    """Fee line (Naknada)"""

    model_config = FROZEN_MODEL

    name: str = Field(..., description="Fee name", min_length=1, max_length=100)
    amount: str = Field(..., description="Fee amount")

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v) -> str:
        return _check_amount(v)


class Invoice(BaseModel):
    """
    One fiscal transaction (Racun)

    Instances are immutable. The protection code may be empty on input;
    the pipeline produces a copy with the code filled in before the
    document is built.
    """

    model_config = FROZEN_MODEL

    oib: str = Field(..., description="Issuer tax identifier (OIB)")
    in_vat_system: bool = Field(..., description="Issuer is in the VAT system")
    issued_at: str = Field(..., description="Issue timestamp, dd.mm.yyyyThh:mm:ss")
    sequence_mode: SequenceMode = Field(..., description="Sequencing mode")
    number: InvoiceNumber = Field(..., description="Invoice number triple")
    vat: List[TaxItem] = Field(default_factory=list, description="VAT lines")
    consumption_tax: List[TaxItem] = Field(default_factory=list, description="Consumption tax lines")
    other_taxes: List[OtherTax] = Field(default_factory=list, description="Other tax lines")
    exempt_amount: Optional[str] = Field(None, description="Amount exempt from VAT")
    margin_amount: Optional[str] = Field(None, description="Margin scheme amount")
    non_taxable_amount: Optional[str] = Field(None, description="Amount not subject to tax")
    fees: List[Fee] = Field(default_factory=list, description="Fee lines")
    total_amount: str = Field(..., description="Total amount")
    payment_method: PaymentMethod = Field(..., description="Payment method")
    operator_oib: str = Field(..., description="Operator tax identifier")
    protection_code: str = Field("", description="Issuer protection code (ZKI)")
    delayed_delivery: bool = Field(False, description="Invoice delivered after the fact")
    paragon_number: Optional[str] = Field(None, min_length=1, max_length=100)
    special_purpose: Optional[str] = Field(None, min_length=1, max_length=1000)

    @field_validator("oib", "operator_oib")
    @classmethod
    def validate_oib(cls, v: str) -> str:
        if not OIB_PATTERN.match(v):
            raise ValueError("OIB must be exactly 11 digits")
        return v

    @field_validator("issued_at")
    @classmethod
    def validate_issued_at(cls, v: str) -> str:
        if not TIMESTAMP_PATTERN.match(v):
            raise ValueError("timestamp must have the form dd.mm.yyyyThh:mm:ss")
        return v

    @field_validator("total_amount", mode="before")
    @classmethod
    def validate_total(cls, v) -> str:
        return _check_amount(v)

    @field_validator("exempt_amount", "margin_amount", "non_taxable_amount", mode="before")
    @classmethod
    def validate_optional_amount(cls, v):
        if v is None:
            return v
        return _check_amount(v)

    @field_validator("protection_code")
    @classmethod
    def validate_protection_code(cls, v: str) -> str:
        if v and not PROTECTION_CODE_PATTERN.match(v):
            raise ValueError("protection code must be 32 lowercase hexadecimal characters")
        return v

    def with_protection_code(self, protection_code: str) -> "Invoice":
        """Return a copy carrying the given protection code"""
        return self.model_validate(
            {**self.model_dump(), "protection_code": protection_code}
        )
