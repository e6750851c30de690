"""XML namespaces and element names used on the wire"""

FISK_NS = "http://www.apis-it.hr/fin/2012/types/f73"
FISK_PREFIX = "tns"
SCHEMA_LOCATION = "http://www.apis-it.hr/fin/2012/types/f73/FiskalizacijaSchema.xsd"

XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
DS_NS = "http://www.w3.org/2000/09/xmldsig#"

INVOICE_REQUEST = "RacunZahtjev"
ECHO_REQUEST = "EchoRequest"


def fisk(local_name: str) -> str:
    """Clark-notation tag in the fiscalization namespace"""
    return f"{{{FISK_NS}}}{local_name}"
