"""Shared utilities: structured logging and billing-date parsing."""
