"""Configuration variable naming."""

import re
from typing import Dict, Optional, Tuple

from secureapi.core.models import SecretKind

PROVIDER_TAGS = {
    SecretKind.OPENAI_KEY: "OPENAI",
    SecretKind.STRIPE_KEY: "STRIPE",
    SecretKind.AWS_KEY: "AWS",
}

FALLBACK_NAME = "SECRET"

_RE_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_RE_NON_WORD = re.compile(r"[^A-Za-z0-9]+")


def to_config_name(variable: str, kind: SecretKind, provider_tag: Optional[str] = None) -> str:
    """
    Derive the canonical upper-snake-case name for a source variable.

    ``apiKey`` holding an OpenAI key becomes ``OPENAI_API_KEY``; the provider
    tag is only added when the name does not already mention it.

    Args:
        variable: Variable name as written in the source (``$`` and dots allowed)
        kind: Shape of the secret assigned to it
        provider_tag: Tag to prepend; defaults to the kind's known provider

    Returns:
        Configuration variable name
    """
    name = _RE_CASE_BOUNDARY.sub(r"\1_\2", variable)
    name = _RE_NON_WORD.sub("_", name).strip("_").upper() or FALLBACK_NAME
    if name[0].isdigit():
        name = f"{FALLBACK_NAME}_{name}"

    tag = (provider_tag or PROVIDER_TAGS.get(kind) or "").upper()
    if tag and tag not in name:
        name = f"{tag}_{name}"
    return name


class NameAllocator:
    """
    Hands out configuration names that are unique across one scan.

    A name is bound to the value it was first allocated for. Asking again
    for the same name and value returns the existing name; a different value
    gets a numbered variant (``_2``, ``_3``, ...).
    """

    def __init__(self):
        self._values: Dict[str, str] = {}

    def allocate(
        self,
        variable: str,
        kind: SecretKind,
        value: str,
        provider_tag: Optional[str] = None,
    ) -> Tuple[str, bool]:
        """
        Allocate a configuration name for ``value``.

        Returns:
            Tuple of (name, created) where ``created`` is False when an
            existing name bound to the same value was reused
        """
        base = to_config_name(variable, kind, provider_tag)
        candidate = base
        counter = 1
        while candidate in self._values:
            if self._values[candidate] == value:
                return candidate, False
            counter += 1
            candidate = f"{base}_{counter}"

        self._values[candidate] = value
        return candidate, True

    @property
    def names(self) -> frozenset:
        return frozenset(self._values)

    @property
    def values(self) -> frozenset:
        return frozenset(self._values.values())

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)
