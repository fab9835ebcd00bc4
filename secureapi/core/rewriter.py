"""
SecureAPI Rewrite Engine

Removes hardcoded secrets from one file's text in two passes:

1. Refactor: ``name = "secret"`` assignments whose value is a provider key or
   connection string are rewritten to read a configuration variable instead.
2. Redact: every remaining detection is replaced by a fixed marker, subject
   to the heuristics that weed out words, paths and short strings.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from secureapi.core.models import (
    Policy,
    RedactionRecord,
    RefactorRecord,
    SecretKind,
    SecretMatch,
    preview_secret,
)
from secureapi.core.naming import NameAllocator
from secureapi.core.patterns import PatternCatalog
from secureapi.utils.logger import get_logger

logger = get_logger(__name__)

REDACTION_MARKER = "[REDACTED_BY_SECUREAPI]"
MIN_SECRET_LENGTH = 8

Span = Tuple[int, int]

_RE_MARKER = re.compile(re.escape(REDACTION_MARKER))
_RE_LOWER_WORD = re.compile(r"[a-z]+")

# keyword* [Type] [obj.]name [: annotation] (= | :=) "value"
_RE_ASSIGNMENT = re.compile(
    r"""
    (?<![\w$@.])
    (?:(?:export|const|let|var|val|final|static|private|public|protected|readonly)\s+)*
    (?:[A-Za-z_][\w.<>\[\]]*\s+)?
    (?:[A-Za-z_]\w*\.)*[$@]{0,2}(?P<name>[A-Za-z_]\w*)
    (?:\s*:\s*[A-Za-z_][\w.<>\[\],|]*)?
    \s*:?=\s*
    (?P<quote>["'`])(?P<value>[^"'`\\\r\n]+)(?P=quote)
    """,
    re.VERBOSE,
)


class Language(str, Enum):
    """Languages with a known configuration lookup syntax."""

    BASH = "bash"
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    JAVA = "java"
    GO = "go"
    RUBY = "ruby"
    PHP = "php"
    CSHARP = "csharp"
    YAML = "yaml"
    JSON = "json"
    PROPERTIES = "properties"
    INI = "ini"
    DOCKERFILE = "dockerfile"
    UNKNOWN = "unknown"


EXTENSION_MAP = {
    ".sh": Language.BASH,
    ".bash": Language.BASH,
    ".zsh": Language.BASH,
    ".env": Language.BASH,
    ".py": Language.PYTHON,
    ".js": Language.JAVASCRIPT,
    ".jsx": Language.JAVASCRIPT,
    ".mjs": Language.JAVASCRIPT,
    ".cjs": Language.JAVASCRIPT,
    ".ts": Language.TYPESCRIPT,
    ".tsx": Language.TYPESCRIPT,
    ".java": Language.JAVA,
    ".kt": Language.JAVA,
    ".go": Language.GO,
    ".rb": Language.RUBY,
    ".php": Language.PHP,
    ".cs": Language.CSHARP,
    ".yaml": Language.YAML,
    ".yml": Language.YAML,
    ".json": Language.JSON,
    ".properties": Language.PROPERTIES,
    ".ini": Language.INI,
    ".cfg": Language.INI,
    "Dockerfile": Language.DOCKERFILE,
}

_LOOKUP_SYNTAX = {
    Language.PYTHON: 'os.environ.get("{name}")',
    Language.JAVASCRIPT: "process.env.{name}",
    Language.TYPESCRIPT: "process.env.{name}",
    Language.JAVA: 'System.getenv("{name}")',
    Language.GO: 'os.Getenv("{name}")',
    Language.RUBY: 'ENV["{name}"]',
    Language.PHP: 'getenv("{name}")',
    Language.CSHARP: 'Environment.GetEnvironmentVariable("{name}")',
}
_INTERPOLATION = "{quote}${{{name}}}{quote}"


def detect_language(file_path: str) -> Language:
    """Detect the language of a file from its name or extension."""
    path = Path(file_path)
    if path.name in EXTENSION_MAP:
        return EXTENSION_MAP[path.name]
    return EXTENSION_MAP.get(path.suffix.lower(), Language.UNKNOWN)


def lookup_expression(language: Language, name: str, quote: str = '"') -> str:
    """
    Expression that reads configuration variable ``name`` in ``language``.

    Languages without an environment API get a quoted ``${NAME}``
    interpolation, reusing the quote of the literal it replaces.
    """
    template = _LOOKUP_SYNTAX.get(language)
    if template:
        return template.format(name=name)
    return _INTERPOLATION.format(name=name, quote='"' if quote == "`" else quote)


@dataclass
class RewriteResult:
    """Outcome of rewriting one file."""

    text: str
    refactors: List[RefactorRecord] = field(default_factory=list)
    redactions: List[RedactionRecord] = field(default_factory=list)
    changed: bool = False


class RewriteEngine:
    """
    Applies the pattern catalog to file text.

    One engine serves one scan: its allocator keeps configuration names
    unique across every file, and it remembers which values were already
    refactored or redacted so the same secret is never recorded twice.
    """

    def __init__(self, catalog: PatternCatalog, allocator: Optional[NameAllocator] = None):
        self.catalog = catalog
        self.allocator = allocator or NameAllocator()
        self._redacted_values: Set[str] = set()

    def rewrite(self, text: str, source_file: str = "") -> RewriteResult:
        """
        Run both passes over ``text``.

        Args:
            text: File content
            source_file: Path of the file inside the archive, used for the
                lookup syntax and the records

        Returns:
            RewriteResult with the new text and what changed
        """
        refactored_text, refactors, lookups = self.refactor_pass(text, source_file)
        redacted_text, redactions = self.redact_pass(refactored_text, source_file, lookups)

        if refactors or redactions:
            logger.debug(
                f"{source_file or '<text>'}: {len(refactors)} refactored, {len(redactions)} redacted"
            )

        return RewriteResult(
            text=redacted_text,
            refactors=refactors,
            redactions=redactions,
            changed=redacted_text != text,
        )

    def refactor_pass(
        self, text: str, source_file: str = ""
    ) -> Tuple[str, List[RefactorRecord], List[Span]]:
        """
        Replace refactorable assignments with configuration lookups.

        Values this engine already redacted elsewhere are left for the
        redact pass, so one secret never ends up both in the configuration
        file and behind a marker.

        Returns:
            Tuple of (new text, records, spans of the rewritten assignments)
        """
        language = detect_language(source_file)
        records: List[RefactorRecord] = []
        lookups: List[Span] = []
        # Within one file the same value always maps to the same name
        names_by_value: Dict[str, str] = {}
        pieces: List[str] = []
        cursor = 0
        length = 0

        for match in _RE_ASSIGNMENT.finditer(text):
            value = match.group("value")
            pattern = self.catalog.classify(value, Policy.REFACTOR)
            if pattern is None:
                continue
            if value in self._redacted_values:
                logger.debug(
                    f"{source_file or '<text>'}: {preview_secret(value)} already redacted, not refactoring"
                )
                continue

            variable = match.group("name")
            name = names_by_value.get(value)
            if name is None:
                name, created = self.allocator.allocate(
                    variable, pattern.kind, value, pattern.provider_tag
                )
                names_by_value[value] = name
                if created:
                    records.append(
                        RefactorRecord(
                            config_name=name,
                            secret_value=value,
                            origin_file=source_file,
                            origin_variable=variable,
                            kind=pattern.kind,
                        )
                    )

            prefix = text[cursor:match.start("quote")]
            lookup = lookup_expression(language, name, match.group("quote"))
            pieces.extend((prefix, lookup))
            # The rewritten assignment, variable name included
            start = length + match.start() - cursor
            length += len(prefix) + len(lookup)
            lookups.append((start, length))
            cursor = match.end()

        if not pieces:
            return text, records, lookups
        pieces.append(text[cursor:])
        return "".join(pieces), records, lookups

    def redact_pass(
        self, text: str, source_file: str = "", protected: Sequence[Span] = ()
    ) -> Tuple[str, List[RedactionRecord]]:
        """
        Replace every remaining secret with the redaction marker.

        Matches overlapping an existing marker or a ``protected`` span (an
        assignment rewritten by the refactor pass) are left alone.
        """
        skipped = [m.span() for m in _RE_MARKER.finditer(text)] + list(protected)
        refactored_values = self.allocator.values
        config_names = self.allocator.names

        records: List[RedactionRecord] = []
        pieces: List[str] = []
        cursor = 0

        for match in sorted(self.catalog.scan(text, source_file), key=lambda m: m.start):
            if any(match.overlaps(start, end) for start, end in skipped):
                continue
            value = match.raw_text
            if value in config_names:
                continue
            if value in refactored_values:
                logger.warning(
                    f"{source_file or '<text>'}: value of a refactored secret "
                    f"({preview_secret(value)}) left in place at offset {match.start}"
                )
                continue
            if match.kind != SecretKind.EMAIL and not self._looks_like_secret(match):
                continue

            pieces.append(text[cursor:match.start])
            pieces.append(REDACTION_MARKER)
            cursor = match.end

            if value not in self._redacted_values:
                self._redacted_values.add(value)
                records.append(
                    RedactionRecord(
                        display_preview=preview_secret(value),
                        kind=match.kind,
                        source_file=source_file,
                    )
                )

        if not pieces:
            return text, records
        pieces.append(text[cursor:])
        return "".join(pieces), records

    @staticmethod
    def _looks_like_secret(match: SecretMatch) -> bool:
        value = match.raw_text
        if len(value) < MIN_SECRET_LENGTH:
            return False
        # URIs always contain "/", every other shape with one is a path
        if match.kind != SecretKind.CONNECTION_STRING and ("/" in value or "\\" in value):
            return False
        if _RE_LOWER_WORD.fullmatch(value):
            return False
        return True
