"""
Configuration validator

Collects every problem in a configuration dictionary instead of stopping
at the first one. Secret values are never echoed back.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fiskal_cis.config.fiskal_config import ConfigDefaults, FiskalEnvironment
from fiskal_cis.exceptions import ValidationError

KEYSTORE_EXTENSIONS = (".p12", ".pfx")


@dataclass
class ValidationErrorDetail:
    """Validation error detail"""
    field: str
    message: str
    value: Optional[Any] = None


@dataclass
class ValidationResult:
    """Validation result"""
    valid: bool
    errors: List[ValidationErrorDetail] = field(default_factory=list)


class ConfigValidator:
    """Validates client configuration with clear error messages"""

    def validate(self, config: Dict[str, Any]) -> ValidationResult:
        """
        Validate a configuration dictionary

        Args:
            config: Configuration dictionary to validate

        Returns:
            ValidationResult with any errors
        """
        errors: List[ValidationErrorDetail] = []

        self._validate_required(config, errors)
        self._validate_formats(config, errors)
        self._validate_timeout(config, errors)
        self._validate_environment(config, errors)
        self._validate_keystore(config, errors)

        return ValidationResult(valid=len(errors) == 0, errors=errors)

    def validate_or_raise(self, config: Dict[str, Any]) -> None:
        """
        Validate and raise if invalid

        Raises:
            ValidationError: Listing every problem found
        """
        result = self.validate(config)
        if not result.valid:
            error_messages = "; ".join(
                f"{e.field}: {e.message}" for e in result.errors
            )
            raise ValidationError(
                f"Configuration validation failed: {error_messages}",
                field=result.errors[0].field,
                details={"errors": [e.field for e in result.errors]},
            )

    def _validate_required(self, config: Dict[str, Any], errors: List[ValidationErrorDetail]) -> None:
        for field_name in ("keystore_path", "keystore_password"):
            value = config.get(field_name)
            if value is None:
                errors.append(ValidationErrorDetail(
                    field=field_name,
                    message=f"{field_name} is required"
                ))
            elif isinstance(value, str) and value.strip() == "":
                errors.append(ValidationErrorDetail(
                    field=field_name,
                    message=f"{field_name} cannot be empty"
                ))

    def _validate_formats(self, config: Dict[str, Any], errors: List[ValidationErrorDetail]) -> None:
        base_url = config.get("base_url")
        if base_url is not None and base_url != "":
            if not isinstance(base_url, str) or not base_url.startswith(("http://", "https://")):
                errors.append(ValidationErrorDetail(
                    field="base_url",
                    message="base_url must be a valid HTTP/HTTPS URL",
                    value=base_url
                ))

        for path_field in ("ca_bundle", "audit_log_path"):
            path_value = config.get(path_field)
            if path_value is not None and path_value != "" and not isinstance(path_value, str):
                errors.append(ValidationErrorDetail(
                    field=path_field,
                    message=f"{path_field} must be a string",
                    value=path_value
                ))

        for flag in ("verify_tls", "enable_audit_log"):
            flag_value = config.get(flag)
            if flag_value is not None and not isinstance(flag_value, bool):
                errors.append(ValidationErrorDetail(
                    field=flag,
                    message=f"{flag} must be a boolean",
                    value=flag_value
                ))

    def _validate_timeout(self, config: Dict[str, Any], errors: List[ValidationErrorDetail]) -> None:
        timeout = config.get("timeout")
        if timeout is None:
            return
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
            errors.append(ValidationErrorDetail(
                field="timeout",
                message="timeout must be a positive integer (milliseconds)",
                value=timeout
            ))
        elif timeout < ConfigDefaults.MIN_TIMEOUT:
            errors.append(ValidationErrorDetail(
                field="timeout",
                message=f"timeout should be at least {ConfigDefaults.MIN_TIMEOUT}ms",
                value=timeout
            ))
        elif timeout > ConfigDefaults.MAX_TIMEOUT:
            errors.append(ValidationErrorDetail(
                field="timeout",
                message=f"timeout should not exceed {ConfigDefaults.MAX_TIMEOUT}ms",
                value=timeout
            ))

    def _validate_environment(self, config: Dict[str, Any], errors: List[ValidationErrorDetail]) -> None:
        environment = config.get("environment")
        if environment is not None:
            valid_environments = [e.value for e in FiskalEnvironment]
            env_value = environment.value if isinstance(environment, FiskalEnvironment) else environment
            if env_value not in valid_environments:
                errors.append(ValidationErrorDetail(
                    field="environment",
                    message=f"environment must be one of: {', '.join(valid_environments)}",
                    value=environment
                ))

    def _validate_keystore(self, config: Dict[str, Any], errors: List[ValidationErrorDetail]) -> None:
        keystore_path = config.get("keystore_path")
        if isinstance(keystore_path, str) and keystore_path.strip():
            if not keystore_path.lower().endswith(KEYSTORE_EXTENSIONS):
                errors.append(ValidationErrorDetail(
                    field="keystore_path",
                    message=(
                        "keystore_path must point to a PKCS#12 keystore "
                        f"({', '.join(KEYSTORE_EXTENSIONS)})"
                    ),
                    value=keystore_path
                ))

        password = config.get("keystore_password")
        if password is not None and not isinstance(password, str):
            errors.append(ValidationErrorDetail(
                field="keystore_password",
                message="keystore_password must be a string",
                value="[REDACTED]"
            ))
