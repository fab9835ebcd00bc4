"""
SecureAPI CLI - Main entry point
"""
import click

from secureapi import __version__
from secureapi.cli.scrub import scrub
from secureapi.cli.serve import serve


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    🛡️  SecureAPI - Hardcoded Secret Scrubber

    Finds API keys, credentials, emails and connection strings in a .zip of
    source code, moves them into a .env file or redacts them, and writes a
    clean archive.

    WORKFLOW:

    1. Scrub an archive locally:
       secureapi scrub project.zip -o project.clean.zip

    2. Or run the upload API:
       secureapi serve --port 8000
    """
    pass


cli.add_command(scrub)
cli.add_command(serve)


if __name__ == '__main__':
    cli()
