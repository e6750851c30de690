"""
SOAP transport layer for the fiscalization service

Wraps signed documents in a SOAP 1.1 envelope and posts them to the
endpoint fixed at construction. One request per call: the authority
deduplicates by message id, so nothing here retries.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

import requests
from lxml import etree
from requests.adapters import HTTPAdapter
from urllib3.exceptions import ReadTimeoutError

from fiskal_cis.documents.namespaces import SOAP_ENV_NS
from fiskal_cis.exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10000  # milliseconds

SOAP_HEADERS = {
    "Content-Type": "text/xml; charset=utf-8",
    "Connection": "close",
}

# Header names that are never written to logs or audit entries
SENSITIVE_FIELDS = [
    "authorization",
    "cookie",
    "password",
]


@dataclass
class SoapAuditEntry:
    """HTTP-level trace of one exchange"""
    timestamp: str
    request_id: str
    method: str
    url: str
    headers: Dict[str, str]
    request_size: int
    status: Optional[int] = None
    response_size: int = 0
    duration: int = 0  # milliseconds
    success: bool = False
    error: Optional[str] = None


# Parser for caller-supplied documents: no entity expansion, no network
_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


def wrap_in_envelope(document: str) -> str:
    """Place a serialized document inside a SOAP 1.1 Envelope/Body"""
    envelope = etree.Element(f"{{{SOAP_ENV_NS}}}Envelope", nsmap={"soapenv": SOAP_ENV_NS})
    body = etree.SubElement(envelope, f"{{{SOAP_ENV_NS}}}Body")
    body.append(etree.fromstring(document.encode("utf-8"), _PARSER))
    return etree.tostring(envelope, encoding="unicode")


class _Exchange:
    """State shared between the caller and the worker running one exchange"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._response: Optional[requests.Response] = None
        self.abandoned = False
        self.status: Optional[int] = None
        self.reason = ""
        self.charset = "utf-8"
        self.raw = b""
        self.error: Optional[Exception] = None

    def attach(self, response: requests.Response) -> bool:
        """Register the live response; False once the caller has given up"""
        with self._lock:
            if self.abandoned:
                return False
            self._response = response
            return True

    def abandon(self) -> None:
        """Give up on the exchange and close the connection if one is open"""
        with self._lock:
            self.abandoned = True
            response = self._response
        if response is not None:
            response.close()


class SoapTransport:
    """
    SOAP client for the fiscalization endpoint

    Features:
    - Bounded wait per exchange, reported as a distinct timeout error
    - TLS trust configured on this client's session only
    - Optional per-exchange audit callback

    Example:
        >>> transport = SoapTransport(CIS_ENDPOINTS[FiskalEnvironment.TEST])
        >>> body = transport.send(signed_xml)
    """

    def __init__(
        self,
        endpoint_url: str,
        timeout: int = DEFAULT_TIMEOUT,
        verify: Union[bool, str] = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Create a transport

        Args:
            endpoint_url: Fiscalization service URL
            timeout: Upper bound for the exchange in milliseconds
            verify: True, False, or a CA bundle path; applied to this
                transport's session only
            session: Pre-built session (mainly for tests)
        """
        self._endpoint_url = endpoint_url
        self._timeout = timeout
        self._session = session or self._create_session()
        self._session.verify = verify
        self._audit_log_callback: Optional[Callable[[SoapAuditEntry], None]] = None
        logger.info("SOAP transport targeting %s", endpoint_url)

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(SOAP_HEADERS)

        adapter = HTTPAdapter(pool_connections=1, pool_maxsize=4, max_retries=0)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    @property
    def timeout_seconds(self) -> float:
        return self._timeout / 1000.0

    def set_audit_log_callback(self, callback: Callable[[SoapAuditEntry], None]) -> None:
        """Set audit log callback"""
        self._audit_log_callback = callback

    def send(self, document: str) -> str:
        """
        Send a document and return the raw response body

        The exchange runs on a worker thread; the caller waits at most the
        configured timeout from the moment the request starts, however
        slowly the server produces its status line, headers or body.

        Args:
            document: Serialized request element (signed where required)

        Returns:
            Response body text

        Raises:
            TransportError: On timeout, connection or TLS failure, or a
                non-success HTTP status
        """
        payload = wrap_in_envelope(document).encode("utf-8")
        request_id = uuid.uuid4().hex[:12]
        headers = dict(SOAP_HEADERS)
        start_time = time.time()
        exchange = _Exchange()

        logger.debug("Sending SOAP request %s (%d bytes)", request_id, len(payload))

        worker = threading.Thread(
            target=self._run_exchange,
            args=(payload, headers, start_time + self.timeout_seconds, exchange),
            name=f"soap-{request_id}",
            daemon=True,
        )
        worker.start()
        worker.join(self.timeout_seconds)

        if worker.is_alive():
            exchange.abandon()
            error = TransportError.timeout(self.timeout_seconds)
            logger.warning("SOAP request %s abandoned after %gs", request_id, self.timeout_seconds)
            self._log_audit(request_id, headers, payload, start_time, exchange.status, 0, error)
            raise error

        if exchange.error is not None:
            cause = exchange.error
            error = cause if isinstance(cause, TransportError) else self._normalize_error(cause)
            self._log_audit(
                request_id, headers, payload, start_time, exchange.status, len(exchange.raw), error
            )
            if error is cause:
                raise error
            raise error from cause

        status = exchange.status
        body = exchange.raw.decode(exchange.charset, errors="replace")

        if status is None or status >= 400:
            logger.warning(
                "SOAP request %s failed: %s %s - %s",
                request_id,
                status,
                exchange.reason,
                body[: TransportError.EXCERPT_LENGTH],
            )
            error = TransportError.http_status(status or 0, exchange.reason, body)
            self._log_audit(request_id, headers, payload, start_time, status, len(exchange.raw), error)
            raise error

        self._log_audit(request_id, headers, payload, start_time, status, len(exchange.raw))
        logger.debug(
            "SOAP request %s completed with %s in %dms",
            request_id,
            status,
            int((time.time() - start_time) * 1000),
        )
        return body

    def _run_exchange(
        self,
        payload: bytes,
        headers: Dict[str, str],
        deadline: float,
        exchange: "_Exchange",
    ) -> None:
        # Runs on the worker thread; outcomes are handed back through exchange
        try:
            response = self._session.post(
                self._endpoint_url,
                data=payload,
                headers=headers,
                timeout=self.timeout_seconds,
                stream=True,
            )
            if not exchange.attach(response):
                response.close()
                return
            with response:
                exchange.status = response.status_code
                exchange.reason = response.reason or ""
                exchange.charset = self._charset(response)
                exchange.raw = self._read_body(response, deadline)
        except Exception as e:
            if exchange.abandoned:
                logger.debug("Abandoned SOAP exchange ended with %s", e)
            exchange.error = e

    def _read_body(self, response: requests.Response, deadline: float) -> bytes:
        """Read the body, giving up once the exchange deadline has passed"""
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=8192):
                if time.time() > deadline:
                    raise TransportError.timeout(self.timeout_seconds)
                chunks.append(chunk)
        except requests.exceptions.ConnectionError as e:
            # requests reports a stalled body read as a connection error
            if e.args and isinstance(e.args[0], ReadTimeoutError):
                raise TransportError.timeout(self.timeout_seconds, cause=e) from e
            raise
        return b"".join(chunks)

    def _charset(self, response: requests.Response) -> str:
        content_type = response.headers.get("Content-Type", "")
        if "charset=" in content_type.lower() and response.encoding:
            return response.encoding
        return "utf-8"

    def _normalize_error(self, error: Exception) -> TransportError:
        """Map requests exceptions onto TransportError kinds"""
        if isinstance(error, requests.exceptions.Timeout):
            return TransportError.timeout(self.timeout_seconds, cause=error)

        if isinstance(error, requests.exceptions.SSLError):
            return TransportError.ssl_error(f"TLS error: {str(error)}", cause=error)

        if isinstance(error, requests.exceptions.ConnectionError):
            return TransportError.connection(f"Connection error: {str(error)}", cause=error)

        return TransportError(f"Request error: {str(error)}", cause=error)

    def _redact_sensitive_data(self, headers: Dict[str, str]) -> Dict[str, str]:
        return {
            key: "[REDACTED]" if any(f in key.lower() for f in SENSITIVE_FIELDS) else value
            for key, value in headers.items()
        }

    def _log_audit(
        self,
        request_id: str,
        headers: Dict[str, str],
        payload: bytes,
        start_time: float,
        status: Optional[int],
        response_size: int,
        error: Optional[Exception] = None,
    ) -> None:
        if not self._audit_log_callback:
            return

        entry = SoapAuditEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method="POST",
            url=self._endpoint_url,
            headers=self._redact_sensitive_data(headers),
            request_size=len(payload),
            status=status,
            response_size=response_size,
            duration=int((time.time() - start_time) * 1000),
            success=error is None,
            error=str(error) if error else None,
        )
        self._audit_log_callback(entry)

    def close(self) -> None:
        """Close the HTTP session"""
        self._session.close()

    def __enter__(self) -> "SoapTransport":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
