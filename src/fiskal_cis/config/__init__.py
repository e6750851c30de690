"""
Configuration module
"""

from fiskal_cis.config.fiskal_config import (
    FiskalConfig,
    FiskalEnvironment,
    CIS_ENDPOINTS,
    ENV_VAR_MAPPING,
    ConfigDefaults,
)
from fiskal_cis.config.config_loader import ConfigLoader
from fiskal_cis.config.config_validator import (
    ConfigValidator,
    ValidationResult,
    ValidationErrorDetail,
)

__all__ = [
    "FiskalConfig",
    "FiskalEnvironment",
    "CIS_ENDPOINTS",
    "ENV_VAR_MAPPING",
    "ConfigDefaults",
    "ConfigLoader",
    "ConfigValidator",
    "ValidationResult",
    "ValidationErrorDetail",
]
