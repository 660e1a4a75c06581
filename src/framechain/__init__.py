"""framechain package entrypoint."""

from framechain.cli.app import main as _cli_main


def main() -> None:
    """Run the framechain CLI."""
    _cli_main()
