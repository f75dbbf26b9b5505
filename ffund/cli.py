"""
Command-line interface for ffund.

Every command reads a project snapshot exported from the platform and
reports whether a change would be accepted. Nothing is written back.
"""
import logging

import click

from ffund.commands.config import config
from ffund.commands.milestone import milestone
from ffund.commands.phase import phase
from ffund.commands.plan import plan


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log allocator decisions to stderr.")
def cli(verbose: bool):
    """Check funding phase and milestone allocations before submitting them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


cli.add_command(phase)
cli.add_command(milestone)
cli.add_command(plan)
cli.add_command(config)


if __name__ == '__main__':
    cli()
