"""Document sources: where notes come from."""

from .base import DocumentSource
from .directory import DirectorySource

__all__ = ["DocumentSource", "DirectorySource"]
