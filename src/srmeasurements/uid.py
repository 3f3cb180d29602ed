import logging
from typing import Optional, Type, TypeVar

import pydicom

logger = logging.getLogger(__name__)


T = TypeVar('T', bound='UID')


class UID(pydicom.uid.UID):

    """Unique DICOM identifier.

    If an object is constructed without a value being provided, a value will be
    generated using the pydicom root, e.g. for tracking unique identifiers that
    are missing from a report or for display set instance UIDs.
    """

    def __new__(cls: Type[T], value: Optional[str] = None) -> T:
        if value is None:
            value = pydicom.uid.generate_uid()
        return super().__new__(cls, value)
