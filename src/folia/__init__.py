"""folia: a filesystem-backed personal knowledge base."""

__version__ = "0.1.0"
