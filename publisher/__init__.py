"""Crosspost publishing core: credentials, validation, adapters, orchestration."""
