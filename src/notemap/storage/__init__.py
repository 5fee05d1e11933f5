"""Storage abstraction for vector backends."""

from .base import VectorStoreBase, get_vector_store, retry_write
from .filters import Where, by_cluster, by_document

__all__ = ["VectorStoreBase", "get_vector_store", "retry_write", "Where", "by_cluster", "by_document"]
