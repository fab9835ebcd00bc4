"""
SecureAPI Artifact Generator

Renders the files added to a scrubbed archive: the configuration file with
the extracted values, a Markdown report of what changed, and the ignore
list that keeps the configuration file out of version control.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from secureapi.core.models import RedactionRecord, RefactorRecord
from secureapi.core.rewriter import REDACTION_MARKER

CONFIG_FILENAME = ".env"
REPORT_FILENAME = "SECUREAPI_REPORT.md"
IGNORE_FILENAME = ".gitignore"

ARTIFACT_FILENAMES = (CONFIG_FILENAME, REPORT_FILENAME, IGNORE_FILENAME)

_KIND_LABELS = {
    "openai_key": "OpenAI key",
    "stripe_key": "Stripe key",
    "aws_key": "AWS key",
    "generic_token": "token",
    "email": "email address",
    "jwt": "JSON Web Token",
    "connection_string": "connection string",
}


@dataclass(frozen=True)
class Artifacts:
    """Bodies of the three generated files."""

    config: str
    report: str
    ignore: str


class ArtifactGenerator:
    """Builds configuration, report and ignore-list text from scan records."""

    def build(
        self,
        refactors: Sequence[RefactorRecord],
        redactions: Sequence[RedactionRecord],
        existing_ignore: Optional[str] = None,
    ) -> Artifacts:
        return Artifacts(
            config=self.config_file(refactors),
            report=self.report(refactors, redactions),
            ignore=self.ignore_file(existing_ignore),
        )

    def config_file(self, refactors: Sequence[RefactorRecord]) -> str:
        """One ``NAME="value"`` line per refactored secret."""
        lines = [
            "# Environment Variables",
            "# Generated by SecureAPI",
            "# WARNING: This file contains sensitive values - do NOT commit!",
            "",
        ]
        if not refactors:
            lines.append("# No secrets were moved into configuration during this scan.")
        for record in refactors:
            escaped_value = record.secret_value.replace("\\", "\\\\").replace('"', '\\"')
            lines.append(f'{record.config_name}="{escaped_value}"')
        return "\n".join(lines) + "\n"

    def ignore_file(self, existing: Optional[str] = None) -> str:
        """Existing ignore list with the configuration file added if missing."""
        content = existing or ""
        entries = {line.strip().lstrip("/") for line in content.splitlines()}
        if CONFIG_FILENAME in entries:
            return content
        if content and not content.endswith("\n"):
            content += "\n"
        if content:
            content += "\n"
        return f"{content}# Added by SecureAPI\n{CONFIG_FILENAME}\n"

    def report(
        self,
        refactors: Sequence[RefactorRecord],
        redactions: Sequence[RedactionRecord],
    ) -> str:
        """Human-readable summary of every change made to the archive."""
        lines: List[str] = ["# SecureAPI Scan Report", ""]

        if not refactors and not redactions:
            lines.extend(
                [
                    "No secrets found. Your code looks clean.",
                    "",
                    "## Keeping it that way",
                    "",
                    "- Read credentials from environment variables or a secrets manager, never from literals.",
                    f"- Keep local configuration files such as `{CONFIG_FILENAME}` listed in `{IGNORE_FILENAME}`.",
                    "- Rotate any credential that has ever been committed, even briefly.",
                    "",
                ]
            )
            return "\n".join(lines)

        lines.append(
            f"Found {len(refactors) + len(redactions)} secret(s): "
            f"{len(refactors)} moved into configuration, {len(redactions)} redacted."
        )
        lines.append("")

        if refactors:
            lines.extend(["## Moved into configuration", ""])
            for record in refactors:
                origin = []
                if record.origin_variable:
                    origin.append(f"was `{record.origin_variable}`")
                if record.origin_file:
                    origin.append(f"in `{record.origin_file}`")
                suffix = f" ({' '.join(origin)})" if origin else ""
                lines.append(f"- `{record.config_name}`{suffix}")
            lines.append("")
            lines.append(
                f"Your code now reads these values from configuration. "
                f"The values themselves are in `{CONFIG_FILENAME}`."
            )
            lines.append("")

        if redactions:
            lines.extend(["## Redacted (manual follow-up required)", ""])
            for record in redactions:
                label = _KIND_LABELS.get(record.kind.value, record.kind.value)
                where = f" in `{record.source_file}`" if record.source_file else ""
                lines.append(f"- `{record.display_preview}` ({label}){where}")
            lines.append("")
            lines.append(
                f"Each of these was replaced with `{REDACTION_MARKER}`. "
                "Restore the intended value from a secure source and rotate the original."
            )
            lines.append("")

        lines.extend(
            [
                "## Setup",
                "",
                "1. Install a configuration loader for your stack, for example "
                "`npm install dotenv` (then `require('dotenv').config()`) or "
                "`pip install python-dotenv` (then `load_dotenv()`).",
                f"2. Load `{CONFIG_FILENAME}` when your application starts, before any "
                "configuration value is read.",
                f"3. Keep `{CONFIG_FILENAME}` out of version control. It has been added to "
                f"`{IGNORE_FILENAME}` for you.",
                "4. Provide the same variables to your hosting platform's environment settings.",
                "",
            ]
        )
        return "\n".join(lines)
