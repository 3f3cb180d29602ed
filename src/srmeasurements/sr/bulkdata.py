"""Retrieval of bulk data referenced by SR documents in DICOM JSON format.

In the DICOM JSON model (see :dcm:`Annex F <part18/chapter_F.html>`), the
value of an attribute may be stored outside of the document and only be
referenced by a ``"BulkDataURI"``. This is common for the Graphic Data of
SCOORD and SCOORD3D content items with many points.

"""
import asyncio
import base64
import logging
from typing import Any, List, MutableMapping, Protocol, Tuple

import numpy as np

from srmeasurements.errors import BulkDataRetrievalError

logger = logging.getLogger(__name__)


BULK_DATA_URI_KEY = 'BulkDataURI'

# Value representations that are encoded as InlineBinary in DICOM JSON
_BINARY_VRS = frozenset({'OB', 'OD', 'OF', 'OL', 'OV', 'OW', 'UN'})


class BulkDataRetriever(Protocol):

    """Collaborator that retrieves the payload of a bulk data element."""

    async def retrieve_bulk_data(
        self,
        bulk_data_uri: str,
        study_instance_uid: str,
        series_instance_uid: str,
        sop_instance_uid: str
    ) -> bytes:
        ...


def decode_float_payload(payload: bytes) -> np.ndarray:
    """Decode a bulk data payload into 32-bit floating point values.

    Parameters
    ----------
    payload: bytes
        Retrieved bulk data in little endian byte order

    Returns
    -------
    numpy.ndarray
        One-dimensional array of 32-bit floating point values

    Raises
    ------
    ValueError
        When the length of the payload is not a multiple of four bytes

    """
    if len(payload) % 4 != 0:
        raise ValueError(
            f'Bulk data payload of {len(payload)} bytes cannot be interpreted '
            'as 32-bit floating point values.'
        )
    return np.frombuffer(payload, dtype='<f4')


def _materialize(attribute: MutableMapping[str, Any], payload: bytes) -> None:
    if attribute.get('vr') in _BINARY_VRS:
        key = 'InlineBinary'
        value: Any = base64.b64encode(payload).decode('ascii')
    else:
        key = 'Value'
        value = decode_float_payload(payload).tolist()
    del attribute[BULK_DATA_URI_KEY]
    attribute[key] = value


class _Resolution:

    def __init__(
        self,
        retriever: BulkDataRetriever,
        study_instance_uid: str,
        series_instance_uid: str,
        sop_instance_uid: str
    ) -> None:
        self._retriever = retriever
        self._uids = (
            study_instance_uid,
            series_instance_uid,
            sop_instance_uid,
        )
        self.count = 0

    async def _fetch(
        self,
        attribute: MutableMapping[str, Any],
        path: str
    ) -> None:
        uri = attribute[BULK_DATA_URI_KEY]
        logger.debug(f'retrieve bulk data "{uri}" at {path}')
        try:
            payload = await self._retriever.retrieve_bulk_data(
                uri,
                *self._uids
            )
        except Exception as error:
            raise BulkDataRetrievalError(
                f'Retrieval of bulk data "{uri}" at {path} failed: {error}',
                bulk_data_uri=uri,
                path=path
            ) from error
        try:
            _materialize(attribute, bytes(payload))
        except ValueError as error:
            raise BulkDataRetrievalError(
                f'Bulk data "{uri}" at {path} cannot be decoded: {error}',
                bulk_data_uri=uri,
                path=path
            ) from error
        self.count += 1

    async def resolve(self, node: Any, path: str) -> None:
        if isinstance(node, list):
            results = await asyncio.gather(
                *[
                    self.resolve(item, f'{path}[{i}]')
                    for i, item in enumerate(node)
                ],
                return_exceptions=True
            )
            errors = [r for r in results if isinstance(r, BaseException)]
            for error in errors:
                if not isinstance(error, Exception):
                    raise error
            if len(errors) > 0:
                if len(errors) > 1:
                    logger.warning(
                        f'{len(errors)} bulk data retrievals failed below '
                        f'{path}'
                    )
                raise errors[0]
        elif isinstance(node, MutableMapping):
            if isinstance(node.get(BULK_DATA_URI_KEY), str):
                await self._fetch(node, path)
                return
            children: List[Tuple[str, Any]] = [
                (key, value) for key, value in node.items()
                if isinstance(value, (list, MutableMapping))
            ]
            for key, value in children:
                await self.resolve(value, f'{path}/{key}')


async def resolve_bulk_data(
    node: Any,
    retriever: BulkDataRetriever,
    study_instance_uid: str,
    series_instance_uid: str,
    sop_instance_uid: str
) -> int:
    """Replace bulk data references in a DICOM JSON subtree by their values.

    The tree is traversed depth-first. Items of the same list are resolved
    concurrently and all of them are awaited before the enclosing node is
    considered resolved, even if one of them fails. Attributes are modified
    in place: the ``"BulkDataURI"`` is replaced by a ``"Value"`` with the
    payload decoded as 32-bit floating point values (or by an
    ``"InlineBinary"`` for binary value representations).

    Parameters
    ----------
    node: Union[dict, list]
        DICOM JSON subtree, e.g. the value of a Content Sequence attribute
    retriever: srmeasurements.sr.bulkdata.BulkDataRetriever
        Collaborator that retrieves bulk data payloads
    study_instance_uid: str
        Study Instance UID of the document
    series_instance_uid: str
        Series Instance UID of the document
    sop_instance_uid: str
        SOP Instance UID of the document

    Returns
    -------
    int
        Number of bulk data elements that were retrieved

    Raises
    ------
    srmeasurements.errors.BulkDataRetrievalError
        When the retrieval of a bulk data element failed

    """
    resolution = _Resolution(
        retriever,
        study_instance_uid,
        series_instance_uid,
        sop_instance_uid
    )
    await resolution.resolve(node, '')
    logger.debug(
        f'retrieved {resolution.count} bulk data elements of SOP instance '
        f'"{sop_instance_uid}"'
    )
    return resolution.count
