"""Domain layer: invoice numbering rules."""
