"""
Request documents and response parsing
"""

from fiskal_cis.documents.builder import InvoiceDocumentBuilder
from fiskal_cis.documents.parser import ResponseInterpreter

__all__ = ["InvoiceDocumentBuilder", "ResponseInterpreter"]
