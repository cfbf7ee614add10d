"""Entry point for python -m doze."""

from doze.cli import cli

if __name__ == "__main__":
    cli(prog_name="doze")
