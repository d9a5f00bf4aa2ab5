"""
privatebonds/cli/__init__.py

privatebonds CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    privatebonds = "privatebonds.cli:cli"
"""

import click

from privatebonds.cli.verify import verify_command


@click.group()
@click.version_option(package_name="privatebonds")
def cli() -> None:
    """
    privatebonds — private bond ledger tools.

    \b
    Commands:
      verify    Verify a ledger event log — chain, signatures, types.
    """
    pass


cli.add_command(verify_command)
