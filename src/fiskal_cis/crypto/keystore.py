"""
Keystore credential loading

Opens the password-protected PKCS#12 keystore issued for fiscalization
and exposes the signing key, the certificate and the issuer data the
XML signature's KeyInfo block needs.
"""

import base64
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, pkcs12

from fiskal_cis.exceptions import KeystoreError, KeystoreErrorKind


@dataclass(frozen=True)
class Credential:
    """
    Signing key, certificate and derived certificate metadata

    Attributes:
        private_key: RSA signing key
        certificate: X.509 certificate matching the key
        issuer: Issuer attributes keyed by short name (C, O, CN, ...)
        serial_number: Certificate serial number as a base-10 string
    """
    private_key: RSAPrivateKey = field(repr=False)
    certificate: x509.Certificate = field(repr=False)
    issuer: Mapping[str, str]
    serial_number: str

    def __repr__(self) -> str:
        return f"Credential(issuer_cn={self.issuer.get('CN', '')!r}, serial_number={self.serial_number!r})"

    @property
    def issuer_name(self) -> str:
        """Issuer rendered as ``C=<c>, O=<o>, CN=<cn>``"""
        return "C={}, O={}, CN={}".format(
            self.issuer.get("C", ""),
            self.issuer.get("O", ""),
            self.issuer.get("CN", ""),
        )

    def certificate_base64(self) -> str:
        """DER-encoded certificate as base64 without whitespace"""
        der = self.certificate.public_bytes(Encoding.DER)
        return base64.b64encode(der).decode("ascii")


class KeystoreCredential:
    """
    Loads a Credential from a PKCS#12 keystore

    Both the private key and the certificate must be present; a keystore
    holding only one of them is rejected as a missing entry.

    Example:
        >>> credential = KeystoreCredential.load_file('./certs/demo.p12', 'secret')
        >>> credential.issuer_name
        'C=HR, O=FINA, CN=Fina Demo CA 2014'
    """

    @staticmethod
    def load(blob: bytes, password: str) -> Credential:
        """
        Decrypt a keystore blob

        Args:
            blob: PKCS#12 keystore bytes
            password: Keystore password

        Returns:
            Loaded credential

        Raises:
            KeystoreError: BAD_PASSWORD when the integrity check fails,
                MISSING_ENTRY when the key or certificate is absent
        """
        try:
            private_key, certificate, _ = pkcs12.load_key_and_certificates(
                blob,
                password.encode("utf-8") if password else None,
            )
        except (ValueError, TypeError) as e:
            raise KeystoreError.bad_password(cause=e) from e

        if private_key is None:
            raise KeystoreError.missing_entry("private key")
        if certificate is None:
            raise KeystoreError.missing_entry("certificate")
        if not isinstance(private_key, RSAPrivateKey):
            raise KeystoreError.missing_entry("RSA private key")

        return Credential(
            private_key=private_key,
            certificate=certificate,
            issuer=MappingProxyType(_issuer_attributes(certificate)),
            serial_number=str(certificate.serial_number),
        )

    @classmethod
    def load_file(cls, path: Union[str, Path], password: str) -> Credential:
        """Read a keystore file and decrypt it"""
        keystore_path = Path(path)
        try:
            blob = keystore_path.read_bytes()
        except OSError as e:
            raise KeystoreError(
                f"Failed to read keystore: {keystore_path}",
                kind=KeystoreErrorKind.MISSING_ENTRY,
                code="KEY03",
                cause=e,
            ) from e
        return cls.load(blob, password)


def _issuer_attributes(certificate: x509.Certificate) -> dict:
    """Flatten the issuer name into short-name attributes; a repeated name keeps its last value"""
    attributes = {}
    for attribute in certificate.issuer:
        attributes[attribute.rfc4514_attribute_name] = str(attribute.value)
    return attributes
