"""Durable storage exception hierarchy."""


class StorageError(Exception):
    """Base exception for durable-tier read/write failures."""


class StorageQuotaExceeded(StorageError):
    """A write would push the durable store past its byte quota."""

    def __init__(self, limit: int, required: int):
        self.limit = limit
        self.required = required
        super().__init__(f"Storage quota of {limit} bytes exceeded (needs {required})")
