"""Promote build artifacts into GitOps release-train deployment branches."""

__version__ = "0.1.0"

__all__ = ["__version__"]
