"""
Response interpreter

Elements are located by local name so the server's choice of namespace
prefixes does not matter.
"""

import logging
from typing import List, Optional

from lxml import etree

from fiskal_cis.exceptions import ProtocolFault, ResponseValidationError
from fiskal_cis.models.envelope import FiscalizationResponse, ResponseError

logger = logging.getLogger(__name__)

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=True)


class ResponseInterpreter:
    """Turns raw SOAP response bodies into FiscalizationResponse values"""

    def parse(self, raw_xml: str) -> FiscalizationResponse:
        """
        Interpret a RacunOdgovor response

        Args:
            raw_xml: Response body as received

        Returns:
            Parsed response; ``errors`` is empty when the response has no
            error block

        Raises:
            ProtocolFault: If the body is a SOAP fault
            ResponseValidationError: If the body is not well-formed XML
        """
        root = self._load(raw_xml)
        self._raise_for_fault(root)

        errors: List[ResponseError] = []
        block = _first(root, "Greske")
        if block is not None:
            for entry in _all(block, "Greska"):
                errors.append(ResponseError(
                    code=_text_of(_first(entry, "SifraGreske")),
                    message=_text_of(_first(entry, "PorukaGreske")),
                ))

        header = _first(root, "Zaglavlje")
        scope = header if header is not None else root

        return FiscalizationResponse(
            issued_identifier=_optional_text(_first(root, "Jir")),
            message_id=_optional_text(_first(scope, "IdPoruke")),
            timestamp=_optional_text(_first(scope, "DatumVrijeme")),
            errors=errors,
        )

    def parse_echo(self, raw_xml: str) -> str:
        """Return the text of an EchoResponse"""
        root = self._load(raw_xml)
        self._raise_for_fault(root)

        echo = _first(root, "EchoResponse")
        if echo is None:
            raise ResponseValidationError("Response has no EchoResponse element", code="RESP02")
        return _text_of(echo)

    def is_fault(self, raw_xml: str) -> bool:
        """Check whether a body is a SOAP fault without raising"""
        try:
            root = self._load(raw_xml)
        except ResponseValidationError:
            return False
        return _first(root, "Fault") is not None

    def _load(self, raw_xml: str) -> etree._Element:
        if not raw_xml or not raw_xml.strip():
            raise ResponseValidationError("Response body is empty", code="RESP01")
        try:
            return etree.fromstring(raw_xml.encode("utf-8"), parser=_PARSER)
        except etree.XMLSyntaxError as e:
            raise ResponseValidationError(
                f"Response is not well-formed XML: {str(e)}", code="RESP01"
            ) from e

    def _raise_for_fault(self, root: etree._Element) -> None:
        fault = _first(root, "Fault")
        if fault is None:
            return
        fault_string = _text_of(_first(fault, "faultstring")) or "Unknown Fault"
        fault_code = _optional_text(_first(fault, "faultcode"))
        logger.warning("Authority returned SOAP fault %s: %s", fault_code, fault_string)
        raise ProtocolFault(fault_string, fault_code=fault_code)


def _all(element: etree._Element, local_name: str) -> list:
    return element.xpath(".//*[local-name()=$name]", name=local_name)


def _first(element: Optional[etree._Element], local_name: str) -> Optional[etree._Element]:
    if element is None:
        return None
    if etree.QName(element).localname == local_name:
        return element
    found = _all(element, local_name)
    return found[0] if found else None


def _text_of(element: Optional[etree._Element]) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def _optional_text(element: Optional[etree._Element]) -> Optional[str]:
    text = _text_of(element)
    return text or None
