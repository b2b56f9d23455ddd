"""kondo-mcp: clj-kondo static analysis exposed as MCP tools."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kondo-mcp")
except PackageNotFoundError:
    __version__ = "dev"
