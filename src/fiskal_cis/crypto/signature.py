"""
XML digital signature for request documents

Produces an enveloped XMLDSig signature over the RacunZahtjev element:

- Reference to the element's ``Id``, transforms enveloped-signature and
  exclusive C14N, SHA-1 digest
- Exclusive C14N for SignedInfo, RSA-SHA1 signature
- KeyInfo with the DER certificate and the issuer/serial pair

No certificate chain validation happens here; the authority establishes
trust when it verifies the request.
"""

import logging
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from lxml import etree
from signxml import (
    CanonicalizationMethod,
    DigestAlgorithm,
    SignatureConstructionMethod,
    SignatureMethod,
    XMLSigner,
)

from fiskal_cis.crypto.keystore import Credential
from fiskal_cis.documents.namespaces import DS_NS, INVOICE_REQUEST
from fiskal_cis.exceptions import SignatureError

logger = logging.getLogger(__name__)

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


class FiskalXMLSigner(XMLSigner):
    """XMLSigner that permits the SHA-1 algorithms the authority mandates"""

    def check_deprecated_methods(self) -> None:
        pass


@dataclass(frozen=True)
class KeyInfoData:
    """
    Pre-computed contents of the signature's KeyInfo block

    Attributes:
        certificate_base64: DER certificate, base64 without whitespace
        issuer_name: Issuer as ``C=<c>, O=<o>, CN=<cn>``
        serial_number: Certificate serial number, base 10
    """
    certificate_base64: str
    issuer_name: str
    serial_number: str

    @classmethod
    def from_credential(cls, credential: Credential) -> "KeyInfoData":
        return cls(
            certificate_base64=credential.certificate_base64(),
            issuer_name=credential.issuer_name,
            serial_number=credential.serial_number,
        )

    def to_element(self) -> etree._Element:
        """Render as a ds:KeyInfo element"""
        key_info = etree.Element(_ds("KeyInfo"), nsmap={"ds": DS_NS})
        x509_data = etree.SubElement(key_info, _ds("X509Data"))
        etree.SubElement(x509_data, _ds("X509Certificate")).text = self.certificate_base64
        issuer_serial = etree.SubElement(x509_data, _ds("X509IssuerSerial"))
        etree.SubElement(issuer_serial, _ds("X509IssuerName")).text = self.issuer_name
        etree.SubElement(issuer_serial, _ds("X509SerialNumber")).text = self.serial_number
        return key_info


def sign_document(
    xml: str,
    private_key: RSAPrivateKey,
    key_info: KeyInfoData,
    target: str = INVOICE_REQUEST,
) -> str:
    """
    Sign a request document

    The signed element is found by local name, so any namespace prefix
    is accepted. It must carry an ``Id`` attribute.

    Args:
        xml: Serialized request document
        private_key: RSA signing key
        key_info: KeyInfo contents to embed
        target: Local name of the element to sign

    Returns:
        Serialized signed element

    Raises:
        SignatureError: If the document is malformed, the target element
            is missing or ambiguous, or signing fails
    """
    try:
        root = etree.fromstring(xml.encode("utf-8"), parser=_PARSER)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise SignatureError(
            f"Document is not well-formed XML: {str(e)}", code="SIG01", cause=e
        ) from e

    matches = root.xpath("//*[local-name()=$name]", name=target)
    if len(matches) != 1:
        raise SignatureError(
            f"Expected exactly one {target} element, found {len(matches)}", code="SIG02"
        )
    element = matches[0]
    reference_id = element.get("Id")
    if not reference_id:
        raise SignatureError(f"{target} element has no Id attribute", code="SIG02")

    try:
        signer = FiskalXMLSigner(
            method=SignatureConstructionMethod.enveloped,
            signature_algorithm=SignatureMethod.RSA_SHA1,
            digest_algorithm=DigestAlgorithm.SHA1,
            c14n_algorithm=CanonicalizationMethod.EXCLUSIVE_XML_CANONICALIZATION_1_0,
        )
        signed = signer.sign(
            element,
            key=private_key,
            reference_uri=f"#{reference_id}",
            key_info=key_info.to_element(),
        )
    except Exception as e:
        raise SignatureError(f"Failed to sign document: {str(e)}", code="SIG03", cause=e) from e

    logger.debug("Signed %s %s", target, reference_id)
    return etree.tostring(signed, encoding="unicode")


class SignedDocumentProducer:
    """
    Signs request documents with a loaded credential

    Example:
        >>> producer = SignedDocumentProducer()
        >>> signed_xml = producer.sign(xml, credential)
    """

    def sign(self, xml: str, credential: Credential) -> str:
        """Sign ``xml`` with the credential's key and certificate data"""
        return sign_document(xml, credential.private_key, KeyInfoData.from_credential(credential))


def _ds(local_name: str) -> str:
    return f"{{{DS_NS}}}{local_name}"
