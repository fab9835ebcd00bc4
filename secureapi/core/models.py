"""Core domain models for SecureAPI."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

PREVIEW_CHARS = 14


class SecretKind(str, Enum):
    """Shapes of secrets the pattern catalog can detect."""

    OPENAI_KEY = "openai_key"
    STRIPE_KEY = "stripe_key"
    AWS_KEY = "aws_key"
    GENERIC_TOKEN = "generic_token"
    EMAIL = "email"
    JWT = "jwt"
    CONNECTION_STRING = "connection_string"


class Policy(str, Enum):
    """What the rewrite engine may do with a match of a given pattern."""

    REFACTOR = "refactor"
    REDACT = "redact"


def preview_secret(value: str, show_chars: int = PREVIEW_CHARS) -> str:
    """Return a short, irreversible preview of a secret.

    At least two characters are always withheld, so the preview never
    reveals the full value.
    """
    visible = max(min(show_chars, len(value) - 2), 0)
    return f"{value[:visible]}..."


@dataclass(frozen=True)
class SecretMatch:
    """A candidate secret found in a block of text.

    ``start`` and ``end`` are offsets into the text the match was found in.
    """

    raw_text: str = field(repr=False)
    kind: SecretKind
    start: int
    end: int
    source_file: str = ""
    pattern_name: str = ""

    @property
    def span(self) -> Tuple[int, int]:
        return self.start, self.end

    def overlaps(self, start: int, end: int) -> bool:
        return self.start < end and start < self.end


@dataclass(frozen=True)
class RefactorRecord:
    """A secret moved out of source text into a named configuration variable."""

    config_name: str
    secret_value: str = field(repr=False)
    origin_file: str = ""
    origin_variable: str = ""
    kind: SecretKind = SecretKind.GENERIC_TOKEN


@dataclass(frozen=True)
class RedactionRecord:
    """A secret replaced in place by the redaction marker."""

    display_preview: str
    kind: SecretKind
    source_file: str = ""


@dataclass
class ScanResult:
    """Aggregate outcome of scrubbing one archive."""

    refactors: List[RefactorRecord] = field(default_factory=list)
    redactions: List[RedactionRecord] = field(default_factory=list)
    archive: bytes = field(default=b"", repr=False)
    files_scanned: int = 0
    files_modified: int = 0
    files_skipped: int = 0

    @property
    def refactored_keys(self) -> List[str]:
        """Configuration names created during the scan."""
        return [record.config_name for record in self.refactors]

    @property
    def redacted_keys(self) -> List[str]:
        """Previews of every redacted secret."""
        return [record.display_preview for record in self.redactions]

    @property
    def total_findings(self) -> int:
        return len(self.refactors) + len(self.redactions)

    @property
    def has_findings(self) -> bool:
        return self.total_findings > 0
