"""Services module initialization"""

from fiskal_cis.services.fiscalization import FiscalizationService

__all__ = ["FiscalizationService"]
