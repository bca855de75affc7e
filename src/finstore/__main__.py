"""Entry point for running finstore as a module.

This allows the CLI to be invoked with ``python -m finstore``.
"""

from .cli import cli

if __name__ == "__main__":  # pragma: no cover
    cli()
