"""
SecureAPI CLI - Scrub Command

Runs the scrubbing engine on a local .zip archive, without the upload API
and without any usage quota.
"""
import json
from pathlib import Path
from typing import Optional

import click

from secureapi.core.archive import ArchiveTranscoder
from secureapi.core.artifacts import REPORT_FILENAME
from secureapi.core.exceptions import SecureAPIError
from secureapi.core.patterns import PatternCatalog
from secureapi.utils.logger import get_logger

_ENGINE_LOGGERS = ("secureapi.core.archive", "secureapi.core.patterns", "secureapi.core.rewriter")


def default_output_path(archive: str) -> Path:
    path = Path(archive)
    return path.with_name(f"{path.stem}.clean{path.suffix or '.zip'}")


@click.command("scrub")
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False),
    help="Where to write the scrubbed archive (default: <name>.clean.zip)"
)
@click.option(
    "--patterns", "-p",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML pattern table to use instead of the bundled one"
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Show engine log output")
@click.pass_context
def scrub(
    ctx,
    archive: str,
    output: Optional[str],
    patterns: Optional[str],
    as_json: bool,
    verbose: bool,
):
    """
    Remove hardcoded secrets from a .zip archive.

    Provider keys and connection strings assigned to variables are moved
    into a generated .env file and replaced with configuration lookups.
    Everything else that looks like a secret is redacted.

    Examples:
        secureapi scrub project.zip
        secureapi scrub project.zip -o clean.zip --json
    """
    output_path = Path(output) if output else default_output_path(archive)

    # Engine logs share stdout with the command's own output
    log_level = "INFO" if verbose else ("ERROR" if as_json else "WARNING")
    for name in _ENGINE_LOGGERS:
        get_logger(name, log_level)

    try:
        catalog = PatternCatalog.load(patterns)
        data, result = ArchiveTranscoder(catalog).process(Path(archive).read_bytes())
    except SecureAPIError as e:
        click.echo(f"❌ {e.message}", err=True)
        ctx.exit(1)

    output_path.write_bytes(data)

    if as_json:
        click.echo(json.dumps({
            "output": str(output_path),
            "refactoredKeys": result.refactored_keys,
            "redactedKeys": result.redacted_keys,
            "filesScanned": result.files_scanned,
            "filesModified": result.files_modified,
            "filesSkipped": result.files_skipped,
        }, indent=2))
        return

    click.echo("\n🛡️  SecureAPI Scrub")
    click.echo("=" * 60)
    click.echo(f"📦 Input:  {archive}")
    click.echo(f"📦 Output: {output_path}")
    click.echo(
        f"   Scanned {result.files_scanned} file(s), modified {result.files_modified}, "
        f"copied {result.files_skipped} verbatim"
    )

    if not result.has_findings:
        click.echo("\n✅ No secrets found!")
        return

    if result.refactors:
        click.echo(f"\n🔧 Moved into configuration ({len(result.refactors)}):")
        for record in result.refactors:
            click.echo(f"   {record.config_name}  ← {record.origin_file}")

    if result.redactions:
        click.echo(f"\n✂️  Redacted ({len(result.redactions)}), manual follow-up required:")
        for record in result.redactions:
            click.echo(f"   {record.display_preview}  ({record.kind.value}) in {record.source_file}")

    click.echo("\n" + "-" * 60)
    click.echo(f"See {REPORT_FILENAME} inside the archive for setup instructions.")
