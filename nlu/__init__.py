"""Per-bot multi-language NLU model lifecycle service."""

__version__ = "0.1.0"
