"""Wiring between the CLI and the pipeline stages."""
