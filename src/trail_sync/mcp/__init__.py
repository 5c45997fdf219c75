"""MCP stdio server exposing sync, export and import as tools."""
