"""Errors raised by srmeasurements processes."""
from typing import Optional


class InstanceMismatchError(ValueError):
    """Structural error of a series of SR instances.

    Exception indicating that a display set cannot be created from the
    provided instances, either because there are none or because they do not
    belong to the same study.

    """
    pass


class BulkDataRetrievalError(Exception):
    """Retrieval of a bulk data element failed.

    The original exception is chained as ``__cause__``.

    """

    def __init__(
        self,
        message: str,
        bulk_data_uri: Optional[str] = None,
        path: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.bulk_data_uri = bulk_data_uri
        self.path = path


class AlreadyBoundError(RuntimeError):
    """A measurement that has already been bound cannot be bound again."""
    pass
