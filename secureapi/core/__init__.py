"""Core package for SecureAPI."""

from secureapi.core.archive import ArchiveTranscoder
from secureapi.core.artifacts import ArtifactGenerator, Artifacts
from secureapi.core.exceptions import SecureAPIError
from secureapi.core.models import RedactionRecord, RefactorRecord, ScanResult, SecretKind, SecretMatch
from secureapi.core.naming import NameAllocator
from secureapi.core.patterns import PatternCatalog, SecretPattern
from secureapi.core.quota import InMemoryQuotaStore, QuotaDecision, QuotaGate, QuotaStore
from secureapi.core.rewriter import REDACTION_MARKER, RewriteEngine, RewriteResult

__all__ = [
    "ArchiveTranscoder",
    "ArtifactGenerator",
    "Artifacts",
    "SecureAPIError",
    "RedactionRecord",
    "RefactorRecord",
    "ScanResult",
    "SecretKind",
    "SecretMatch",
    "NameAllocator",
    "PatternCatalog",
    "SecretPattern",
    "InMemoryQuotaStore",
    "QuotaDecision",
    "QuotaGate",
    "QuotaStore",
    "REDACTION_MARKER",
    "RewriteEngine",
    "RewriteResult",
]
