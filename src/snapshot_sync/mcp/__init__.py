"""MCP stdio server exposing the snapshot sync engine as tools."""
