# shop_engagement/services/exceptions.py

class ServiceError(Exception):
    """Base class for engine service-layer errors."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class StoreError(ServiceError):
    """The record store backend could not complete a read or write."""
    pass


class StoreConflictError(StoreError):
    """A compare-and-swap update kept losing races and gave up."""
    pass


class StoreCorruptionError(StoreError):
    """A stored collection could not be decoded, so it must not be rewritten."""
    pass
