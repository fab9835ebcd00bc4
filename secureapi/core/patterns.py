"""Pattern catalog: the ordered table of secret shapes."""

import re
from bisect import bisect_left, insort
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

import yaml

from secureapi.core.exceptions import ConfigurationError
from secureapi.core.models import Policy, SecretKind, SecretMatch
from secureapi.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PATTERNS_FILE = Path(__file__).parent.parent / "config" / "secret_patterns.yaml"

_BOUNDARIES = {
    "alnum": (r"(?<![A-Za-z0-9])", r"(?![A-Za-z0-9])"),
    "none": ("", ""),
}


class SecretPattern:
    """A single secret shape and the policy attached to it."""

    def __init__(
        self,
        name: str,
        pattern: str,
        kind: Union[SecretKind, str],
        policy: Union[Policy, str] = Policy.REDACT,
        description: str = "",
        provider_tag: Optional[str] = None,
        ignore_case: bool = False,
    ):
        """Initialize a secret pattern."""
        self.name = name
        self.kind = SecretKind(kind)
        self.policy = Policy(policy)
        self.description = description
        self.provider_tag = provider_tag.upper() if provider_tag else None
        self.ignore_case = ignore_case
        self.regex = re.compile(pattern, re.IGNORECASE if ignore_case else 0)

    @classmethod
    def from_config(cls, definition: Dict) -> "SecretPattern":
        """
        Build a pattern from one entry of the YAML table.

        An entry either names a raw ``pattern`` or describes a token by its
        ``prefixes``, ``charset`` and length bounds.

        Raises:
            ConfigurationError: If the entry is incomplete or does not compile
        """
        name = definition.get("name")
        if not name:
            raise ConfigurationError("Pattern entry is missing a name", details={"entry": definition})

        boundary = definition.get("boundary", "alnum")
        if boundary not in _BOUNDARIES:
            raise ConfigurationError(f"Unknown boundary '{boundary}' for pattern {name}")
        before, after = _BOUNDARIES[boundary]

        if "pattern" in definition:
            body = definition["pattern"]
        elif "charset" in definition or "prefixes" in definition:
            body = _token_body(definition)
        else:
            raise ConfigurationError(f"Pattern {name} needs either 'pattern' or 'charset'")

        try:
            return cls(
                name=name,
                pattern=f"{before}(?:{body}){after}",
                kind=definition["kind"],
                policy=definition.get("policy", Policy.REDACT.value),
                description=definition.get("description", ""),
                provider_tag=definition.get("provider_tag"),
                ignore_case=bool(definition.get("ignore_case", False)),
            )
        except KeyError as e:
            raise ConfigurationError(f"Pattern {name} is missing field {e}")
        except (ValueError, re.error) as e:
            raise ConfigurationError(f"Invalid pattern {name}: {e}")

    def __repr__(self) -> str:
        return f"SecretPattern(name={self.name!r}, kind={self.kind.value}, policy={self.policy.value})"


def _token_body(definition: Dict) -> str:
    """Build the regex body for a prefix + token shape."""
    charset = definition.get("charset", "A-Za-z0-9")
    min_length = int(definition.get("min_length", 16))
    max_length = definition.get("max_length")
    repeat = f"{{{min_length},{int(max_length) if max_length else ''}}}"

    # Longest prefix first so "sk-proj-" wins over "sk-"
    prefixes = sorted(definition.get("prefixes") or [], key=len, reverse=True)
    prefix = "|".join(re.escape(p) for p in prefixes)
    if prefix:
        return f"(?:{prefix})[{charset}]{repeat}"
    return f"[{charset}]{repeat}"


class PatternCatalog:
    """
    Ordered set of secret detectors.

    The order of the table is its priority: a span of text claimed by an
    earlier pattern is never offered to a later one.
    """

    def __init__(self, patterns: List[SecretPattern]):
        self.patterns: List[SecretPattern] = list(patterns)

    @classmethod
    def load(cls, patterns_file: Optional[Union[str, Path]] = None) -> "PatternCatalog":
        """Load the catalog from a YAML table (the bundled one by default)."""
        path = Path(patterns_file) if patterns_file else DEFAULT_PATTERNS_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load patterns file: {e}", details={"path": str(path)})

        catalog = cls.from_dict(config)
        logger.debug(f"Loaded {len(catalog)} secret patterns from {path}")
        return catalog

    @classmethod
    def from_dict(cls, config: Dict) -> "PatternCatalog":
        entries = config.get("patterns") if isinstance(config, dict) else None
        if not entries:
            raise ConfigurationError("Pattern table defines no patterns")
        return cls([SecretPattern.from_config(entry) for entry in entries])

    def __len__(self) -> int:
        return len(self.patterns)

    def __iter__(self) -> Iterator[SecretPattern]:
        return iter(self.patterns)

    def scan(self, text: str, source_file: str = "") -> Iterator[SecretMatch]:
        """
        Yield candidate secrets in ``text``.

        Matches come out grouped by pattern priority rather than by position;
        callers that need document order should sort on ``start``. Every call
        starts a fresh scan.
        """
        starts: List[int] = []
        claimed: Dict[int, int] = {}

        for pattern in self.patterns:
            for match in pattern.regex.finditer(text):
                start, end = match.span()
                if start == end or _overlaps_claimed(starts, claimed, start, end):
                    continue
                insort(starts, start)
                claimed[start] = end
                yield SecretMatch(
                    raw_text=match.group(0),
                    kind=pattern.kind,
                    start=start,
                    end=end,
                    source_file=source_file,
                    pattern_name=pattern.name,
                )

    def classify(self, value: str, policy: Optional[Policy] = None) -> Optional[SecretPattern]:
        """Return the highest-priority pattern matching the whole of ``value``."""
        for pattern in self.patterns:
            if policy is not None and pattern.policy != policy:
                continue
            if pattern.regex.fullmatch(value):
                return pattern
        return None

    def provider_tag(self, kind: SecretKind) -> Optional[str]:
        """Provider tag of the first pattern producing ``kind``, if any."""
        for pattern in self.patterns:
            if pattern.kind == kind and pattern.provider_tag:
                return pattern.provider_tag
        return None


def _overlaps_claimed(starts: List[int], claimed: Dict[int, int], start: int, end: int) -> bool:
    # Claimed spans never overlap each other, so sorting by start also sorts
    # by end and only the closest span starting before ``end`` can collide.
    index = bisect_left(starts, end)
    if index == 0:
        return False
    return claimed[starts[index - 1]] > start
