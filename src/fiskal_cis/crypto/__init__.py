"""
Cryptography module
Keystore loading, protection code and XML signature
"""

from fiskal_cis.crypto.keystore import Credential, KeystoreCredential
from fiskal_cis.crypto.protection_code import ProtectionCodeGenerator, format_zki_amount
from fiskal_cis.crypto.signature import (
    FiskalXMLSigner,
    KeyInfoData,
    SignedDocumentProducer,
    sign_document,
)

__all__ = [
    "Credential",
    "KeystoreCredential",
    "ProtectionCodeGenerator",
    "format_zki_amount",
    "FiskalXMLSigner",
    "KeyInfoData",
    "SignedDocumentProducer",
    "sign_document",
]
