"""Formatters turning a structured Report into text, terminal or JSON output."""
