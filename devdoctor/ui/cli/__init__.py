"""CLI command groups registered by ``devdoctor.main``."""
