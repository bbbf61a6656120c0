"""Protocol definitions for external collaborators."""

from docscope.protocols.store import Store

__all__ = ["Store"]
