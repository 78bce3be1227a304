"""Command line interface (``python -m erp_import.cli``)."""
