"""
Fiskalizacija client configuration types

Endpoint selection and the exchange timeout change protocol behaviour;
everything else here is plumbing for building a service.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator


class FiskalEnvironment(str, Enum):
    """CIS environment"""
    TEST = "test"
    PRODUCTION = "production"


CIS_ENDPOINTS = {
    FiskalEnvironment.TEST: "https://cistest.apis-it.hr:8449/FiskalizacijaServiceTest",
    FiskalEnvironment.PRODUCTION: "https://cis.porezna-uprava.hr:8449/FiskalizacijaService",
}


class ConfigDefaults:
    """Default configuration values"""
    ENVIRONMENT = FiskalEnvironment.TEST
    TIMEOUT = 10000
    MIN_TIMEOUT = 1000
    MAX_TIMEOUT = 60000
    VERIFY_TLS = True
    ENABLE_AUDIT_LOG = True


ENV_VAR_MAPPING = {
    "FISKAL_KEYSTORE_PATH": "keystore_path",
    "FISKAL_KEYSTORE_PASSWORD": "keystore_password",
    "FISKAL_ENVIRONMENT": "environment",
    "FISKAL_BASE_URL": "base_url",
    "FISKAL_TIMEOUT": "timeout",
    "FISKAL_CA_BUNDLE": "ca_bundle",
    "FISKAL_VERIFY_TLS": "verify_tls",
    "FISKAL_ENABLE_AUDIT_LOG": "enable_audit_log",
    "FISKAL_AUDIT_LOG_PATH": "audit_log_path",
}


class FiskalConfig(BaseModel):
    """
    Client configuration

    The endpoint is fixed once a service is built from this config; to
    switch environments build a new service.
    """

    keystore_path: str = Field(
        ...,
        description="Path to the PKCS#12 keystore (.p12/.pfx)",
        min_length=1
    )
    keystore_password: str = Field(
        ...,
        description="Keystore password",
        min_length=1,
        repr=False
    )

    environment: FiskalEnvironment = Field(
        default=ConfigDefaults.ENVIRONMENT,
        description="Environment: 'test' or 'production'"
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Override the environment's endpoint"
    )
    timeout: int = Field(
        default=ConfigDefaults.TIMEOUT,
        description="Upper bound for one exchange in milliseconds",
        ge=ConfigDefaults.MIN_TIMEOUT,
        le=ConfigDefaults.MAX_TIMEOUT
    )

    ca_bundle: Optional[str] = Field(
        default=None,
        description="CA bundle trusted for the endpoint"
    )
    verify_tls: bool = Field(
        default=ConfigDefaults.VERIFY_TLS,
        description="Verify the endpoint's TLS certificate"
    )

    enable_audit_log: bool = Field(
        default=ConfigDefaults.ENABLE_AUDIT_LOG,
        description="Write an audit record per attempt"
    )
    audit_log_path: Optional[str] = Field(
        default=None,
        description="JSON-lines file for audit records"
    )

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
    }

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v != "":
            if not v.startswith(("http://", "https://")):
                raise ValueError("base_url must be a valid HTTP/HTTPS URL")
        return v or None

    def get_resolved_base_url(self) -> str:
        """Endpoint URL for this configuration"""
        return self.base_url or CIS_ENDPOINTS[self.environment]

    def get_verify(self) -> Union[bool, str]:
        """Value for the transport session's ``verify``"""
        if not self.verify_tls:
            return False
        return self.ca_bundle or True
