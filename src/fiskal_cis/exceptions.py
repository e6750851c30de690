"""Exception classes for the Fiskalizacija CIS client"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from fiskal_cis.models.envelope import FiscalizationResponse, ResponseError


class FiskalErrorCategory(str, Enum):
    """Error category derived from the error code prefix"""
    KEYSTORE = "KEY"
    SIGNATURE = "SIG"
    NETWORK = "NET"
    FAULT = "FAULT"
    RESPONSE = "RESP"
    VALIDATION = "VAL"
    CONFIG = "CONFIG"
    UNKNOWN = "UNKNOWN"


class FiskalError(Exception):
    """
    Base exception for fiscalization errors

    All errors raised by the client extend from this class and carry
    a code from which the category is derived.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.cause = cause
        self.details = details
        self.timestamp = datetime.now(timezone.utc)
        self.category = self._determine_category(code)

    def _determine_category(self, code: Optional[str]) -> FiskalErrorCategory:
        """Determine error category from code"""
        if not code:
            return FiskalErrorCategory.UNKNOWN

        for category in FiskalErrorCategory:
            if category is not FiskalErrorCategory.UNKNOWN and code.startswith(category.value):
                return category

        return FiskalErrorCategory.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary"""
        return {
            "name": self.__class__.__name__,
            "message": str(self),
            "code": self.code,
            "status_code": self.status_code,
            "category": self.category.value,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }

    def has_code(self, code: str) -> bool:
        """Check if error has a specific code"""
        return self.code == code

    def is_category(self, category: FiskalErrorCategory) -> bool:
        """Check if error belongs to a category"""
        return self.category == category

    def get_description(self) -> str:
        """Get human-readable error description"""
        parts = [str(self)]

        if self.code:
            parts.insert(0, f"[{self.code}]")

        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")

        return " ".join(parts)


class ValidationError(FiskalError):
    """Validation error"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="VALIDATION_ERROR", details=details)
        self.field = field


class ConfigError(FiskalError):
    """Configuration error"""

    def __init__(
        self,
        message: str,
        code: str = "CONFIG01",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class KeystoreErrorKind(str, Enum):
    """Why a keystore could not be turned into a credential"""
    BAD_PASSWORD = "bad_password"
    MISSING_ENTRY = "missing_entry"


class KeystoreError(FiskalError):
    """
    The keystore could not be opened or lacks a key or certificate

    Unrecoverable: a service cannot be constructed without a credential.
    """

    def __init__(
        self,
        message: str,
        kind: KeystoreErrorKind,
        code: str = "KEY01",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, code=code, cause=cause)
        self.kind = kind

    @classmethod
    def bad_password(cls, cause: Optional[Exception] = None) -> "KeystoreError":
        """Integrity check failed: wrong password or damaged keystore"""
        return cls(
            "Failed to open keystore. Invalid password or corrupted data.",
            kind=KeystoreErrorKind.BAD_PASSWORD,
            code="KEY01",
            cause=cause,
        )

    @classmethod
    def missing_entry(cls, entry: str) -> "KeystoreError":
        """The keystore decrypted but lacks the given entry"""
        return cls(
            f"Keystore does not contain a {entry}",
            kind=KeystoreErrorKind.MISSING_ENTRY,
            code="KEY02",
        )


class SignatureError(FiskalError):
    """Document construction or XML signing failed"""

    def __init__(
        self,
        message: str,
        code: str = "SIG03",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, code=code, cause=cause)


class TransportErrorKind(str, Enum):
    """Transport failure kinds"""
    TIMEOUT = "NET01"
    CONNECTION = "NET02"
    HTTP_STATUS = "NET03"
    SSL = "NET04"
    UNKNOWN = "NET10"


class TransportError(FiskalError):
    """
    Network error for the SOAP exchange

    ``response_body`` holds whatever body text was received (possibly
    empty); the message only carries a short excerpt of it.
    """

    EXCERPT_LENGTH = 200

    def __init__(
        self,
        message: str,
        kind: TransportErrorKind = TransportErrorKind.UNKNOWN,
        status_code: Optional[int] = None,
        response_body: str = "",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, code=kind.value, status_code=status_code, cause=cause)
        self.kind = kind
        self.response_body = response_body

    @property
    def is_timeout(self) -> bool:
        return self.kind is TransportErrorKind.TIMEOUT

    @classmethod
    def timeout(cls, seconds: float, cause: Optional[Exception] = None) -> "TransportError":
        """Create a timeout error"""
        return cls(
            f"SOAP request timed out after {seconds:g}s",
            kind=TransportErrorKind.TIMEOUT,
            cause=cause,
        )

    @classmethod
    def connection(cls, message: str, cause: Optional[Exception] = None) -> "TransportError":
        """Create a connection error"""
        return cls(message, kind=TransportErrorKind.CONNECTION, cause=cause)

    @classmethod
    def ssl_error(cls, message: str, cause: Optional[Exception] = None) -> "TransportError":
        """Create a TLS error"""
        return cls(message, kind=TransportErrorKind.SSL, cause=cause)

    @classmethod
    def http_status(cls, status_code: int, reason: str, body: str) -> "TransportError":
        """Create an error for a non-success HTTP status"""
        excerpt = body[: cls.EXCERPT_LENGTH]
        return cls(
            f"SOAP request failed: {status_code} {reason} - {excerpt}",
            kind=TransportErrorKind.HTTP_STATUS,
            status_code=status_code,
            response_body=body,
        )


class ProtocolFault(FiskalError):
    """The authority rejected the exchange with a SOAP fault"""

    def __init__(self, fault_string: str, fault_code: Optional[str] = None) -> None:
        super().__init__(fault_string, code="FAULT")
        self.fault_string = fault_string
        self.fault_code = fault_code


class ResponseValidationError(FiskalError):
    """
    The response parsed but cannot be accepted as a success

    Carries the authority-reported errors, in document order, when the
    response contained any.
    """

    def __init__(
        self,
        message: str,
        code: str = "RESP02",
        errors: Optional[List["ResponseError"]] = None,
        response: Optional["FiscalizationResponse"] = None,
    ) -> None:
        super().__init__(message, code=code)
        self.errors = list(errors or [])
        self.response = response
