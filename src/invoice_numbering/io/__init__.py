"""I/O layer: record store implementations."""
