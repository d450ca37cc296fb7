"""Vendor command protocol engine and MCP server for USB magnetic-stripe card readers."""

__version__ = "0.1.0"
