from .kinds import ProvisionOutcome, TlsMode
from .site import CertificatePaths, ProvisionResult, SiteRequest

__all__ = [
    "CertificatePaths",
    "ProvisionOutcome",
    "ProvisionResult",
    "SiteRequest",
    "TlsMode",
]
