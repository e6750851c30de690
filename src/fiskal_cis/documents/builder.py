"""
Invoice request document builder

Maps a RequestEnvelope onto the RacunZahtjev element. The authority's
schema is positional: children are emitted in schema order and empty
optional collections are left out entirely.
"""

from decimal import InvalidOperation
from typing import Iterable, Optional

from lxml import etree

from fiskal_cis.documents.namespaces import (
    ECHO_REQUEST,
    FISK_NS,
    FISK_PREFIX,
    INVOICE_REQUEST,
    SCHEMA_LOCATION,
    XSI_NS,
    fisk,
)
from fiskal_cis.exceptions import ValidationError
from fiskal_cis.models.envelope import RequestEnvelope
from fiskal_cis.models.invoice import Fee, Invoice, OtherTax, TaxItem
from fiskal_cis.utils.formatting import format_amount, format_bool

NSMAP = {FISK_PREFIX: FISK_NS, "xsi": XSI_NS}


class InvoiceDocumentBuilder:
    """
    Builds request documents for the fiscalization service

    Output is deterministic for a given envelope.

    Example:
        >>> builder = InvoiceDocumentBuilder()
        >>> xml = builder.build(RequestEnvelope(message_id=..., timestamp=..., invoice=invoice))
    """

    def build(self, envelope: RequestEnvelope) -> str:
        """
        Build the RacunZahtjev document

        Args:
            envelope: Request with a fully populated invoice

        Returns:
            Serialized document (no XML declaration)

        Raises:
            ValidationError: If the invoice has no protection code
        """
        invoice = envelope.invoice
        if not invoice.protection_code:
            raise ValidationError(
                "Invoice protection code must be set before the document is built",
                field="protection_code",
            )

        root = self._root(INVOICE_REQUEST)
        root.set("Id", envelope.message_id)

        header = _sub(root, "Zaglavlje")
        _text(header, "IdPoruke", envelope.message_id)
        _text(header, "DatumVrijeme", envelope.timestamp)

        self._build_invoice(_sub(root, "Racun"), invoice)

        return etree.tostring(root, encoding="unicode")

    def build_echo(self, message: str) -> str:
        """Build an EchoRequest carrying ``message``"""
        if not message or len(message) > 1000:
            raise ValidationError("Echo message must be 1-1000 characters", field="message")
        root = self._root(ECHO_REQUEST)
        root.text = message
        return etree.tostring(root, encoding="unicode")

    def _root(self, local_name: str) -> etree._Element:
        root = etree.Element(fisk(local_name), nsmap=NSMAP)
        root.set(f"{{{XSI_NS}}}schemaLocation", SCHEMA_LOCATION)
        return root

    def _build_invoice(self, racun: etree._Element, invoice: Invoice) -> None:
        _text(racun, "Oib", invoice.oib)
        _text(racun, "USustPdv", format_bool(invoice.in_vat_system))
        _text(racun, "DatVrijeme", invoice.issued_at)
        _text(racun, "OznSlijed", invoice.sequence_mode.value)

        number = _sub(racun, "BrRac")
        _text(number, "BrOznRac", invoice.number.number)
        _text(number, "OznPosPr", invoice.number.business_space)
        _text(number, "OznNapUr", invoice.number.payment_device)

        self._tax_block(racun, "Pdv", invoice.vat)
        self._tax_block(racun, "Pnp", invoice.consumption_tax)
        self._tax_block(racun, "OstaliPor", invoice.other_taxes)

        _amount(racun, "IznosOslobPdv", invoice.exempt_amount)
        _amount(racun, "IznosMarza", invoice.margin_amount)
        _amount(racun, "IznosNePodlOpor", invoice.non_taxable_amount)

        self._fee_block(racun, invoice.fees)

        _amount(racun, "IznosUkupno", invoice.total_amount)
        _text(racun, "NacinPlac", invoice.payment_method.value)
        _text(racun, "OibOper", invoice.operator_oib)
        _text(racun, "ZastKod", invoice.protection_code)
        _text(racun, "NakDost", format_bool(invoice.delayed_delivery))

        if invoice.paragon_number:
            _text(racun, "ParagonBrRac", invoice.paragon_number)
        if invoice.special_purpose:
            _text(racun, "SpecNamj", invoice.special_purpose)

    def _tax_block(self, parent: etree._Element, name: str, items: Iterable[TaxItem]) -> None:
        items = list(items)
        if not items:
            return
        block = _sub(parent, name)
        for item in items:
            tax = _sub(block, "Porez")
            if isinstance(item, OtherTax):
                _text(tax, "Naziv", item.name)
            _amount(tax, "Stopa", item.rate)
            _amount(tax, "Osnovica", item.base)
            _amount(tax, "Iznos", item.amount)

    def _fee_block(self, parent: etree._Element, fees: Iterable[Fee]) -> None:
        fees = list(fees)
        if not fees:
            return
        block = _sub(parent, "Naknade")
        for fee in fees:
            entry = _sub(block, "Naknada")
            _text(entry, "NazivN", fee.name)
            _amount(entry, "IznosN", fee.amount)


def _sub(parent: etree._Element, local_name: str) -> etree._Element:
    return etree.SubElement(parent, fisk(local_name))


def _text(parent: etree._Element, local_name: str, value: str) -> etree._Element:
    element = _sub(parent, local_name)
    element.text = value
    return element


def _amount(parent: etree._Element, local_name: str, value: Optional[str]) -> None:
    if value is None:
        return
    try:
        _text(parent, local_name, format_amount(value))
    except InvalidOperation as e:
        raise ValidationError(f"Invalid amount in {local_name}: {value!r}", field=local_name) from e
