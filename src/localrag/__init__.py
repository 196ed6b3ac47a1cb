"""LocalRag - incremental semantic search over local repositories."""

__version__ = "0.1.0"
