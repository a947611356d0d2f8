from .local_storage import LocalByteStorage, StoredBytes

__all__ = ["LocalByteStorage", "StoredBytes"]
