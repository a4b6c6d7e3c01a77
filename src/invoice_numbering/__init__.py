"""
Invoice numbering - durable, human-legible identifiers for billing line items.

Derives client shortforms from organization names, allocates date-based
invoice numbers from snapshots of existing identifiers, and migrates legacy
sequential numbers to the date-based scheme.
"""

__version__ = "0.1.0"
