"""Allow ``python -m kondo_mcp``."""

from kondo_mcp.cli import cli

if __name__ == "__main__":
    cli()
