"""
Fiscalization service

Runs one invoice through the whole exchange:

1. Compute (or keep) the protection code on an immutable copy
2. Build the request document
3. Sign it
4. Send it
5. Interpret the response

Every attempt ends with exactly one audit record, whatever happened
along the way. Nothing is retried: a caller wanting another attempt
calls ``fiscalize_invoice`` again, which uses a fresh message id.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from fiskal_cis.audit import AuditSink, JsonLinesAuditSink
from fiskal_cis.client.soap_client import SoapTransport
from fiskal_cis.config.fiskal_config import FiskalConfig
from fiskal_cis.crypto.keystore import Credential, KeystoreCredential
from fiskal_cis.crypto.protection_code import ProtectionCodeGenerator
from fiskal_cis.crypto.signature import SignedDocumentProducer
from fiskal_cis.documents.builder import InvoiceDocumentBuilder
from fiskal_cis.documents.parser import ResponseInterpreter
from fiskal_cis.exceptions import (
    ProtocolFault,
    ResponseValidationError,
    TransportError,
    TransportErrorKind,
)
from fiskal_cis.models.audit import AuditRecord, AuditStatus
from fiskal_cis.models.envelope import (
    FiscalizationResponse,
    FiscalizationResult,
    RequestEnvelope,
)
from fiskal_cis.models.invoice import Invoice
from fiskal_cis.utils.formatting import format_timestamp

logger = logging.getLogger(__name__)


class FiscalizationService:
    """
    Fiscalizes invoices against the tax authority's CIS endpoint

    The credential and the endpoint are fixed for the lifetime of the
    service. Instances hold no per-invoice state and may be shared
    between threads as long as the transport may.

    Example:
        >>> service = FiscalizationService.from_config(config)
        >>> result = service.fiscalize_invoice(invoice)
        >>> print(result.issued_identifier)
    """

    def __init__(
        self,
        credential: Credential,
        transport: SoapTransport,
        audit_sink: Optional[AuditSink] = None,
        builder: Optional[InvoiceDocumentBuilder] = None,
        signer: Optional[SignedDocumentProducer] = None,
        interpreter: Optional[ResponseInterpreter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._credential = credential
        self._transport = transport
        self._audit_sink = audit_sink
        self._builder = builder or InvoiceDocumentBuilder()
        self._signer = signer or SignedDocumentProducer()
        self._interpreter = interpreter or ResponseInterpreter()
        self._clock = clock or datetime.now

    @classmethod
    def from_config(
        cls,
        config: FiskalConfig,
        audit_sink: Optional[AuditSink] = None,
    ) -> "FiscalizationService":
        """
        Build a service from configuration

        Loads the keystore and creates the transport for the configured
        endpoint. When no sink is given and audit logging is enabled with
        a path, records go to a JSON-lines file.

        Raises:
            KeystoreError: If the keystore cannot be read or opened
        """
        credential = KeystoreCredential.load_file(config.keystore_path, config.keystore_password)
        transport = SoapTransport(
            config.get_resolved_base_url(),
            timeout=config.timeout,
            verify=config.get_verify(),
        )
        if audit_sink is None and config.enable_audit_log and config.audit_log_path:
            audit_sink = JsonLinesAuditSink(config.audit_log_path)
        return cls(credential, transport, audit_sink=audit_sink)

    @property
    def credential(self) -> Credential:
        return self._credential

    def fiscalize_invoice(self, invoice: Invoice) -> FiscalizationResult:
        """
        Fiscalize one invoice

        The caller's invoice is never modified; if it has no protection
        code, a copy with the computed code is what gets sent.

        Args:
            invoice: Fully populated invoice, protection code optional

        Returns:
            Issued identifier, message id, response timestamp and the
            protection code that was sent

        Raises:
            SignatureError: If the protection code or signature cannot be
                computed
            TransportError: On timeout, network failure or HTTP error
            ProtocolFault: If the authority answered with a SOAP fault
            ResponseValidationError: If the response is malformed, carries
                errors, or cannot be matched to the request
        """
        message_id = str(uuid.uuid4())
        timestamp = format_timestamp(self._clock())
        number = "/".join(invoice.number.as_tuple())

        protection_code = invoice.protection_code
        signed_document = ""
        response_document = ""
        issued_identifier: Optional[str] = None
        status = AuditStatus.ERROR
        error_text: Optional[str] = None

        logger.info("Fiscalizing invoice %s (message %s)", number, message_id)

        try:
            populated = ProtectionCodeGenerator.ensure(invoice, self._credential.private_key)
            protection_code = populated.protection_code

            document = self._builder.build(
                RequestEnvelope(message_id=message_id, timestamp=timestamp, invoice=populated)
            )
            signed_document = self._signer.sign(document, self._credential)

            try:
                response_document = self._transport.send(signed_document)
            except TransportError as e:
                response_document = e.response_body
                self._raise_if_fault(e)
                raise

            response = self._interpreter.parse(response_document)
            issued_identifier = response.issued_identifier
            result = self._accept(response, message_id, protection_code)

            status = AuditStatus.SUCCESS
            logger.info(
                "Invoice %s fiscalized: JIR %s (message %s)",
                number,
                result.issued_identifier,
                message_id,
            )
            return result

        except ResponseValidationError as e:
            error_text = AuditRecord.serialize_errors(e.errors) if e.errors else str(e)
            raise
        except Exception as e:
            error_text = str(e)
            logger.info("Fiscalization of invoice %s failed: %s", number, error_text)
            raise
        finally:
            self._write_audit(
                correlation_id=message_id,
                invoice_number=invoice.number,
                request_document=signed_document,
                response_document=response_document or "",
                status=status,
                issued_identifier=issued_identifier,
                protection_code=protection_code,
                error=error_text,
            )

    def echo(self, message: str) -> str:
        """
        Send an EchoRequest and return the echoed text

        Echo exchanges are unsigned and not audited.
        """
        document = self._builder.build_echo(message)
        try:
            body = self._transport.send(document)
        except TransportError as e:
            self._raise_if_fault(e)
            raise
        return self._interpreter.parse_echo(body)

    def close(self) -> None:
        """Close the underlying transport"""
        self._transport.close()

    def __enter__(self) -> "FiscalizationService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _raise_if_fault(self, error: TransportError) -> None:
        # SOAP 1.1 faults arrive with HTTP 500
        if error.kind is not TransportErrorKind.HTTP_STATUS:
            return
        if not self._interpreter.is_fault(error.response_body):
            return
        try:
            self._interpreter.parse(error.response_body)
        except ProtocolFault as fault:
            raise fault from error

    def _accept(
        self,
        response: FiscalizationResponse,
        message_id: str,
        protection_code: str,
    ) -> FiscalizationResult:
        if response.has_errors:
            code = "RESP04" if response.issued_identifier else "RESP03"
            summary = "; ".join(f"{e.code}: {e.message}" for e in response.errors)
            logger.warning("Authority reported errors for message %s: %s", message_id, summary)
            raise ResponseValidationError(
                f"Authority reported errors: {summary}",
                code=code,
                errors=response.errors,
                response=response,
            )

        if not response.issued_identifier:
            raise ResponseValidationError(
                "Response contains neither an issued identifier nor errors",
                code="RESP02",
                response=response,
            )

        if response.message_id and response.message_id != message_id:
            raise ResponseValidationError(
                f"Response message id {response.message_id} does not match request {message_id}",
                code="RESP05",
                response=response,
            )

        return FiscalizationResult(
            issued_identifier=response.issued_identifier,
            message_id=message_id,
            timestamp=response.timestamp,
            protection_code=protection_code,
        )

    def _write_audit(self, **fields) -> None:
        if self._audit_sink is None:
            return
        try:
            self._audit_sink.record(AuditRecord(**fields))
        except Exception:
            logger.exception("Failed to write audit record %s", fields.get("correlation_id"))
