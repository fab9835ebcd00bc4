"""SecureAPI - Secret scrubbing for uploaded source archives."""

__version__ = "0.1.0"
__author__ = "SecureAPI Team"
__email__ = "team@secureapi.online"

from secureapi.core.models import (
    RedactionRecord,
    RefactorRecord,
    ScanResult,
    SecretKind,
    SecretMatch,
)

__all__ = [
    "RedactionRecord",
    "RefactorRecord",
    "ScanResult",
    "SecretKind",
    "SecretMatch",
    "__version__",
]
