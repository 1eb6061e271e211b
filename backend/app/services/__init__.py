"""
Services package for calls to external collaborators.
"""

from .certificate_service import CertificateService, get_certificate_service

__all__ = [
    "CertificateService",
    "get_certificate_service",
]
