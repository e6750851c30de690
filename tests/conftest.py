"""
Shared fixtures

Key material is generated once per session: an RSA key, a self-signed
certificate with a FINA-style issuer and a password-protected PKCS#12
keystore holding both.
"""

import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, pkcs12
from cryptography.x509.oid import NameOID

from fiskal_cis.audit import MemoryAuditSink
from fiskal_cis.crypto.keystore import Credential, KeystoreCredential
from fiskal_cis.models import Invoice, InvoiceNumber, PaymentMethod, SequenceMode, TaxItem

KEYSTORE_PASSWORD = "secret"
CERTIFICATE_SERIAL = 0x1A2B3C4D5E6F


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def certificate(private_key) -> x509.Certificate:
    name = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "HR"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "FINA"),
        x509.NameAttribute(NameOID.COMMON_NAME, "Fina Demo CA 2014"),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(CERTIFICATE_SERIAL)
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=365))
        .sign(private_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def keystore_blob(private_key, certificate) -> bytes:
    return pkcs12.serialize_key_and_certificates(
        b"fiskal",
        private_key,
        certificate,
        None,
        BestAvailableEncryption(KEYSTORE_PASSWORD.encode("utf-8")),
    )


@pytest.fixture(scope="session")
def credential(keystore_blob) -> Credential:
    return KeystoreCredential.load(keystore_blob, KEYSTORE_PASSWORD)


@pytest.fixture
def invoice() -> Invoice:
    return Invoice(
        oib="62615118085",
        in_vat_system=True,
        issued_at="01.01.2024T10:00:00",
        sequence_mode=SequenceMode.BY_BUSINESS_SPACE,
        number=InvoiceNumber(number="1", business_space="1", payment_device="1"),
        vat=[TaxItem(rate="25.00", base="100.00", amount="25.00")],
        total_amount="125.00",
        payment_method=PaymentMethod.CASH,
        operator_oib="62615118085",
    )


@pytest.fixture
def audit_sink() -> MemoryAuditSink:
    return MemoryAuditSink()



@pytest.fixture(scope="session")
def keystore_password() -> str:
    return KEYSTORE_PASSWORD
