"""
Fiscalization Service Unit Tests
"""

import json
import logging
from datetime import datetime
from typing import List, Optional

import pytest
from lxml import etree

from fiskal_cis.audit import JsonLinesAuditSink
from fiskal_cis.config import FiskalConfig
from fiskal_cis.crypto.protection_code import ProtectionCodeGenerator
from fiskal_cis.documents.namespaces import DS_NS, FISK_NS
from fiskal_cis.exceptions import (
    KeystoreError,
    KeystoreErrorKind,
    ProtocolFault,
    ResponseValidationError,
    SignatureError,
    TransportError,
)
from fiskal_cis.models import AuditStatus, FiscalizationResult
from fiskal_cis.services import FiscalizationService

NS = {"ds": DS_NS, "tns": FISK_NS}

FAULT = (
    '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/"><soap:Body>'
    "<soap:Fault><faultcode>soap:Client</faultcode>"
    "<faultstring>Neispravan zahtjev</faultstring></soap:Fault>"
    "</soap:Body></soap:Envelope>"
)


def racun_odgovor(message_id: Optional[str], body: str) -> str:
    header = ""
    if message_id is not None:
        header = (
            f"<tns:Zaglavlje><tns:IdPoruke>{message_id}</tns:IdPoruke>"
            "<tns:DatumVrijeme>01.01.2024T10:00:06</tns:DatumVrijeme></tns:Zaglavlje>"
        )
    return (
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/"><soap:Body>'
        f'<tns:RacunOdgovor xmlns:tns="{FISK_NS}">{header}{body}</tns:RacunOdgovor>'
        "</soap:Body></soap:Envelope>"
    )


def request_id(document: str) -> str:
    return etree.fromstring(document).get("Id")


class StubTransport:
    """Transport double that answers through a callable"""

    def __init__(self, reply=None, error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.sent: List[str] = []
        self.closed = False

    def send(self, document: str) -> str:
        self.sent.append(document)
        if self.error is not None:
            raise self.error
        return self.reply(document)

    def close(self) -> None:
        self.closed = True


class FailingSink:
    def record(self, entry) -> None:
        raise OSError("disk full")


def success_reply(document: str) -> str:
    return racun_odgovor(request_id(document), "<tns:Jir>AB12-CD34</tns:Jir>")


def fixed_clock() -> datetime:
    return datetime(2024, 1, 1, 10, 0, 5)


class TestFiscalizeInvoice:
    """Tests for FiscalizationService.fiscalize_invoice"""

    @pytest.fixture
    def make_service(self, credential, audit_sink):
        def factory(transport, sink=audit_sink) -> FiscalizationService:
            return FiscalizationService(credential, transport, audit_sink=sink, clock=fixed_clock)
        return factory

    def test_success(self, make_service, invoice, audit_sink, credential):
        transport = StubTransport(success_reply)
        result = make_service(transport).fiscalize_invoice(invoice)

        assert isinstance(result, FiscalizationResult)
        assert result.issued_identifier == "AB12-CD34"
        assert result.timestamp == "01.01.2024T10:00:06"
        assert result.protection_code == ProtectionCodeGenerator.generate(
            "62615118085", "01.01.2024T10:00:00", "1", "1", "1", "125.00", credential.private_key
        )

        sent = etree.fromstring(transport.sent[0])
        assert sent.get("Id") == result.message_id
        assert len(sent.findall(".//ds:Signature", NS)) == 1
        assert sent.find(".//ds:Reference", NS).get("URI") == f"#{result.message_id}"
        assert sent.find("tns:Zaglavlje/tns:DatumVrijeme", NS).text == "01.01.2024T10:00:05"
        assert sent.find("tns:Racun/tns:ZastKod", NS).text == result.protection_code

        assert len(audit_sink.records) == 1
        record = audit_sink.records[0]
        assert record.status == AuditStatus.SUCCESS
        assert record.correlation_id == result.message_id
        assert record.invoice_number == invoice.number
        assert record.issued_identifier == "AB12-CD34"
        assert record.protection_code == result.protection_code
        assert record.request_document == transport.sent[0]
        assert "AB12-CD34" in record.response_document
        assert record.error is None

    def test_caller_invoice_not_modified(self, make_service, invoice):
        make_service(StubTransport(success_reply)).fiscalize_invoice(invoice)
        assert invoice.protection_code == ""

    def test_supplied_protection_code_kept(self, make_service, invoice):
        code = "0123456789abcdef0123456789abcdef"
        result = make_service(StubTransport(success_reply)).fiscalize_invoice(
            invoice.with_protection_code(code)
        )
        assert result.protection_code == code

    def test_fresh_message_id_per_attempt(self, make_service, invoice):
        service = make_service(StubTransport(success_reply))
        first = service.fiscalize_invoice(invoice)
        second = service.fiscalize_invoice(invoice)
        assert first.message_id != second.message_id

    def test_timeout(self, make_service, invoice, audit_sink):
        transport = StubTransport(error=TransportError.timeout(10))

        with pytest.raises(TransportError) as exc_info:
            make_service(transport).fiscalize_invoice(invoice)

        assert exc_info.value.is_timeout
        assert len(audit_sink.records) == 1
        record = audit_sink.records[0]
        assert record.status == AuditStatus.ERROR
        assert record.response_document == ""
        assert record.request_document == transport.sent[0]
        assert "timed out" in record.error

    def test_authority_errors(self, make_service, invoice, audit_sink):
        body = (
            "<tns:Greske><tns:Greska><tns:SifraGreske>s004</tns:SifraGreske>"
            "<tns:PorukaGreske>Neispravan digitalni potpis.</tns:PorukaGreske></tns:Greska>"
            "<tns:Greska><tns:SifraGreske>s005</tns:SifraGreske>"
            "<tns:PorukaGreske>OIB iz poruke zahtjeva nije jednak OIB-u iz certifikata.</tns:PorukaGreske>"
            "</tns:Greska></tns:Greske>"
        )
        transport = StubTransport(lambda doc: racun_odgovor(request_id(doc), body))

        with pytest.raises(ResponseValidationError) as exc_info:
            make_service(transport).fiscalize_invoice(invoice)

        assert exc_info.value.code == "RESP03"
        assert [e.code for e in exc_info.value.errors] == ["s004", "s005"]

        record = audit_sink.records[0]
        assert record.status == AuditStatus.ERROR
        assert [e["code"] for e in json.loads(record.error)] == ["s004", "s005"]
        assert "s004" in record.response_document

    def test_identifier_with_errors(self, make_service, invoice):
        body = (
            "<tns:Jir>AB12-CD34</tns:Jir><tns:Greske><tns:Greska>"
            "<tns:SifraGreske>s001</tns:SifraGreske><tns:PorukaGreske>x</tns:PorukaGreske>"
            "</tns:Greska></tns:Greske>"
        )
        transport = StubTransport(lambda doc: racun_odgovor(request_id(doc), body))

        with pytest.raises(ResponseValidationError) as exc_info:
            make_service(transport).fiscalize_invoice(invoice)
        assert exc_info.value.code == "RESP04"

    def test_missing_identifier(self, make_service, invoice, audit_sink):
        transport = StubTransport(lambda doc: racun_odgovor(request_id(doc), ""))

        with pytest.raises(ResponseValidationError) as exc_info:
            make_service(transport).fiscalize_invoice(invoice)

        assert exc_info.value.code == "RESP02"
        assert audit_sink.records[0].status == AuditStatus.ERROR

    def test_message_id_mismatch(self, make_service, invoice):
        transport = StubTransport(
            lambda doc: racun_odgovor("00000000-0000-0000-0000-000000000000", "<tns:Jir>AB12-CD34</tns:Jir>")
        )

        with pytest.raises(ResponseValidationError) as exc_info:
            make_service(transport).fiscalize_invoice(invoice)
        assert exc_info.value.code == "RESP05"

    def test_fault_in_success_status(self, make_service, invoice, audit_sink):
        transport = StubTransport(lambda doc: FAULT)

        with pytest.raises(ProtocolFault) as exc_info:
            make_service(transport).fiscalize_invoice(invoice)

        assert exc_info.value.fault_string == "Neispravan zahtjev"
        assert audit_sink.records[0].response_document == FAULT

    def test_fault_over_http_500(self, make_service, invoice, audit_sink):
        error = TransportError.http_status(500, "Internal Server Error", FAULT)
        transport = StubTransport(error=error)

        with pytest.raises(ProtocolFault) as exc_info:
            make_service(transport).fiscalize_invoice(invoice)

        assert exc_info.value.fault_string == "Neispravan zahtjev"
        assert exc_info.value.__cause__ is error
        record = audit_sink.records[0]
        assert record.response_document == FAULT
        assert record.error == "Neispravan zahtjev"

    def test_http_error_without_fault(self, make_service, invoice, audit_sink):
        error = TransportError.http_status(502, "Bad Gateway", "<html>proxy</html>")

        with pytest.raises(TransportError) as exc_info:
            make_service(StubTransport(error=error)).fiscalize_invoice(invoice)

        assert exc_info.value is error
        assert audit_sink.records[0].response_document == "<html>proxy</html>"

    def test_signing_failure(self, credential, invoice, audit_sink):
        class BrokenSigner:
            def sign(self, xml, credential):
                raise SignatureError("boom")

        transport = StubTransport(success_reply)
        service = FiscalizationService(
            credential, transport, audit_sink=audit_sink, signer=BrokenSigner()
        )

        with pytest.raises(SignatureError):
            service.fiscalize_invoice(invoice)

        assert transport.sent == []
        record = audit_sink.records[0]
        assert record.status == AuditStatus.ERROR
        assert record.request_document == ""
        assert record.protection_code != ""

    def test_audit_failure_does_not_mask_success(self, make_service, invoice, caplog):
        service = make_service(StubTransport(success_reply), sink=FailingSink())

        with caplog.at_level(logging.ERROR, logger="fiskal_cis.services.fiscalization"):
            result = service.fiscalize_invoice(invoice)

        assert result.issued_identifier == "AB12-CD34"
        assert any("audit record" in r.getMessage() for r in caplog.records)

    def test_audit_failure_does_not_mask_error(self, make_service, invoice):
        service = make_service(StubTransport(error=TransportError.timeout(10)), sink=FailingSink())

        with pytest.raises(TransportError) as exc_info:
            service.fiscalize_invoice(invoice)
        assert exc_info.value.is_timeout

    def test_without_audit_sink(self, credential, invoice):
        service = FiscalizationService(credential, StubTransport(success_reply))
        assert service.fiscalize_invoice(invoice).issued_identifier == "AB12-CD34"


class TestEcho:
    """Tests for FiscalizationService.echo"""

    def test_echo(self, credential, audit_sink):
        def reply(document: str) -> str:
            text = etree.fromstring(document).text
            return (
                '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/"><soap:Body>'
                f'<tns:EchoResponse xmlns:tns="{FISK_NS}">{text}</tns:EchoResponse>'
                "</soap:Body></soap:Envelope>"
            )

        transport = StubTransport(reply)
        service = FiscalizationService(credential, transport, audit_sink=audit_sink)

        assert service.echo("proba") == "proba"
        assert "Signature" not in transport.sent[0]
        assert audit_sink.records == []

    def test_echo_fault_over_http_500(self, credential):
        error = TransportError.http_status(500, "Internal Server Error", FAULT)
        service = FiscalizationService(credential, StubTransport(error=error))

        with pytest.raises(ProtocolFault):
            service.echo("proba")


class TestFromConfig:
    """Tests for FiscalizationService.from_config"""

    def test_from_config(self, tmp_path, keystore_blob, keystore_password):
        keystore = tmp_path / "fiskal.p12"
        keystore.write_bytes(keystore_blob)
        config = FiskalConfig(
            keystore_path=str(keystore),
            keystore_password=keystore_password,
            timeout=5000,
            audit_log_path=str(tmp_path / "logs" / "audit.jsonl"),
        )

        with FiscalizationService.from_config(config) as service:
            transport = service._transport
            assert transport.endpoint_url == "https://cistest.apis-it.hr:8449/FiskalizacijaServiceTest"
            assert transport.timeout_seconds == 5.0
            assert isinstance(service._audit_sink, JsonLinesAuditSink)
            assert service.credential.issuer["CN"] == "Fina Demo CA 2014"

    def test_from_config_bad_password(self, tmp_path, keystore_blob):
        keystore = tmp_path / "fiskal.p12"
        keystore.write_bytes(keystore_blob)
        config = FiskalConfig(keystore_path=str(keystore), keystore_password="wrong")

        with pytest.raises(KeystoreError) as exc_info:
            FiscalizationService.from_config(config)
        assert exc_info.value.kind == KeystoreErrorKind.BAD_PASSWORD


class TestJsonLinesAuditSink:
    """Tests for the file-backed audit sink"""

    def test_appends_records(self, tmp_path, credential, invoice):
        sink = JsonLinesAuditSink(tmp_path / "audit" / "fiskal.jsonl")
        service = FiscalizationService(credential, StubTransport(success_reply), audit_sink=sink)

        service.fiscalize_invoice(invoice)
        service.fiscalize_invoice(invoice)

        lines = sink.path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["status"] == "SUCCESS"
        assert first["issued_identifier"] == "AB12-CD34"
        assert first["invoice_number"] == {"number": "1", "business_space": "1", "payment_device": "1"}
