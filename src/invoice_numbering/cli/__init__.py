"""Command-line interface for invoice numbering."""
