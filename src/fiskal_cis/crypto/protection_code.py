"""
Issuer protection code (ZKI)

ZKI = MD5(RSA-SHA1 signature over the concatenated invoice fields),
rendered as lowercase hex. The field layout is fixed by the tax
authority and the code is recomputed by auditors, so every formatting
rule here is part of the contract.
"""

import hashlib
import logging
from decimal import Decimal, InvalidOperation
from typing import Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from fiskal_cis.exceptions import SignatureError, ValidationError
from fiskal_cis.models.invoice import Invoice
from fiskal_cis.utils.formatting import format_amount

logger = logging.getLogger(__name__)


def format_zki_amount(amount: Union[Decimal, str, int]) -> str:
    """
    Format an amount with exactly two decimals and a ``.`` separator

    ``100``, ``"100"``, ``"100.00"`` and ``"100,00"`` all give ``"100.00"``.
    Halves round away from zero.
    """
    try:
        return format_amount(amount)
    except InvalidOperation as e:
        raise ValidationError(f"Invalid total amount: {amount!r}", field="total_amount") from e


class ProtectionCodeGenerator:
    """
    Computes the issuer protection code

    Stateless; safe to share across threads.

    Example:
        >>> ProtectionCodeGenerator.generate(
        ...     '62615118085', '01.01.2024T10:00:00', '1', '1', '1',
        ...     Decimal('125.00'), credential.private_key)
        'e4d9...'
    """

    @staticmethod
    def data_string(
        oib: str,
        timestamp: str,
        invoice_number: str,
        business_space: str,
        payment_device: str,
        total_amount: Union[Decimal, str, int],
    ) -> str:
        """Concatenate the signed fields without separators"""
        return "".join([
            oib,
            timestamp,
            invoice_number,
            business_space,
            payment_device,
            format_zki_amount(total_amount),
        ])

    @classmethod
    def generate(
        cls,
        oib: str,
        timestamp: str,
        invoice_number: str,
        business_space: str,
        payment_device: str,
        total_amount: Union[Decimal, str, int],
        signing_key: RSAPrivateKey,
    ) -> str:
        """
        Generate the protection code

        Args:
            oib: Issuer tax identifier
            timestamp: Issue timestamp (dd.mm.yyyyThh:mm:ss)
            invoice_number: Sequential invoice number
            business_space: Business space label
            payment_device: Payment device label
            total_amount: Invoice total
            signing_key: Issuer's RSA private key

        Returns:
            32-character lowercase hex string

        Raises:
            SignatureError: If the RSA signature cannot be computed
        """
        data = cls.data_string(
            oib, timestamp, invoice_number, business_space, payment_device, total_amount
        )
        try:
            signature = signing_key.sign(
                data.encode("utf-8"),
                padding.PKCS1v15(),
                hashes.SHA1(),
            )
        except Exception as e:
            raise SignatureError(
                f"Failed to compute protection code: {str(e)}",
                code="SIG03",
                cause=e,
            ) from e

        return hashlib.md5(signature).hexdigest()

    @classmethod
    def ensure(cls, invoice: Invoice, signing_key: RSAPrivateKey) -> Invoice:
        """
        Return an invoice that carries a protection code

        A supplied code is kept as is (its format is checked by the
        model); a missing one is computed. The caller's instance is never
        modified.
        """
        if invoice.protection_code:
            return invoice

        code = cls.generate(
            invoice.oib,
            invoice.issued_at,
            invoice.number.number,
            invoice.number.business_space,
            invoice.number.payment_device,
            invoice.total_amount,
            signing_key,
        )
        logger.debug("Computed protection code for invoice %s", "/".join(invoice.number.as_tuple()))
        return invoice.with_protection_code(code)
