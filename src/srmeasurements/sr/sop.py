"""Structured Report document instances."""
import copy
import json
import logging
from os import PathLike
from typing import Any, BinaryIO, Dict, List, Mapping, Optional, Union

from pydicom import dcmread
from pydicom.dataset import Dataset
from pydicom.tag import Tag
from pydicom.uid import (
    BasicTextSRStorage,
    Comprehensive3DSRStorage,
    ComprehensiveSRStorage,
    EnhancedSRStorage,
    UID_dictionary,
)

from srmeasurements import codes
from srmeasurements.sr.bulkdata import BulkDataRetriever, resolve_bulk_data
from srmeasurements.sr.utils import get_first_concept, get_code_string

logger = logging.getLogger(__name__)


SR_SOP_CLASS_UIDS = (
    BasicTextSRStorage,
    EnhancedSRStorage,
    ComprehensiveSRStorage,
)

SR_3D_SOP_CLASS_UIDS = (
    Comprehensive3DSRStorage,
)

_CONTENT_SEQUENCE_TAG = '{:08X}'.format(Tag('ContentSequence'))


class SRDocument:

    """SR document instance whose content may reference bulk data.

    Documents are either constructed from a data set, e.g. read from a DICOM
    file, or from metadata in DICOM JSON format, e.g. retrieved via DICOMweb.
    In the latter case, bulk data referenced by the content needs to be
    resolved before the content can be accessed.

    """

    def __init__(
        self,
        header: Dataset,
        content: Optional[Dataset] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Parameters
        ----------
        header: pydicom.dataset.Dataset
            Attributes of the document except for the Content Sequence
        content: Union[pydicom.dataset.Dataset, None], optional
            Data set with the resolved Content Sequence of the document
        metadata: Union[Dict[str, Any], None], optional
            Document in DICOM JSON format, whose Content Sequence may contain
            bulk data references

        """
        if content is None and metadata is None:
            raise TypeError(
                'Either argument "content" or "metadata" must be provided.'
            )
        self._header = header
        self._content = content
        self._metadata = metadata

    def __repr__(self) -> str:
        return (
            f'SRDocument(SOPInstanceUID={self.SOPInstanceUID!r}, '
            f'is_resolved={self.is_resolved!r})'
        )

    def __getattr__(self, name: str) -> Any:
        # Only called for attributes that are not defined on the instance
        if name.startswith('_'):
            raise AttributeError(name)
        header = self.__dict__.get('_header')
        if header is None:
            raise AttributeError(name)
        return getattr(header, name)

    def get(self, keyword: str, default: Any = None) -> Any:
        """Get the value of a header attribute.

        Parameters
        ----------
        keyword: str
            Keyword of the attribute
        default: Any, optional
            Value returned if the attribute is missing

        """
        return self._header.get(keyword, default)

    @classmethod
    def from_dataset(cls, dataset: Dataset) -> 'SRDocument':
        """Construct a document from an existing data set.

        Parameters
        ----------
        dataset: pydicom.dataset.Dataset
            Data set representing an SR document

        Returns
        -------
        srmeasurements.sr.SRDocument
            SR document, whose content is resolved

        """
        if not isinstance(dataset, Dataset):
            raise TypeError('Dataset must be a pydicom.dataset.Dataset.')
        if 'ContentSequence' not in dataset:
            raise ValueError('Dataset is not an SR document.')
        header = Dataset()
        for element in dataset:
            if element.keyword != 'ContentSequence':
                header.add(element)
        content = Dataset()
        content.ContentSequence = dataset.ContentSequence
        return cls(header=header, content=content)

    @classmethod
    def from_json(
        cls,
        metadata: Union[Mapping[str, Any], str]
    ) -> 'SRDocument':
        """Construct a document from metadata in DICOM JSON format.

        Parameters
        ----------
        metadata: Union[Mapping[str, Any], str]
            Document in DICOM JSON format. The Content Sequence may contain
            attributes with a ``"BulkDataURI"``.

        Returns
        -------
        srmeasurements.sr.SRDocument
            SR document, whose content is not yet resolved

        """
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        metadata = copy.deepcopy(dict(metadata))
        if _CONTENT_SEQUENCE_TAG not in metadata:
            raise ValueError('Metadata do not represent an SR document.')
        header_metadata = {
            tag: attribute for tag, attribute in metadata.items()
            if tag != _CONTENT_SEQUENCE_TAG
        }
        header = Dataset.from_json(header_metadata)
        return cls(header=header, metadata=metadata)

    @property
    def is_resolved(self) -> bool:
        """bool: whether bulk data of the content has been resolved"""
        return self._content is not None

    @property
    def is_3d(self) -> bool:
        """bool: whether the document is a Comprehensive 3D SR document"""
        return self._header.get('SOPClassUID', None) in SR_3D_SOP_CLASS_UIDS

    @property
    def is_imaging_measurement_report(self) -> bool:
        """bool: whether the document title is Imaging Measurement Report"""
        concept = get_first_concept(self._header)
        return (
            get_code_string(concept, 'CodeValue') ==
            codes.ImagingMeasurementReport.value
        )

    @property
    def content_sequence(self) -> List[Dataset]:
        """List[pydicom.dataset.Dataset]: items of the Content Sequence

        Raises
        ------
        RuntimeError
            When bulk data of the content has not yet been resolved

        """
        if self._content is None:
            raise RuntimeError(
                f'Content of SR document "{self.SOPInstanceUID}" has not yet '
                'been resolved.'
            )
        return list(self._content.ContentSequence)

    async def resolve_bulk_data(self, retriever: BulkDataRetriever) -> int:
        """Retrieve bulk data referenced by the content of the document.

        Parameters
        ----------
        retriever: srmeasurements.sr.bulkdata.BulkDataRetriever
            Collaborator that retrieves bulk data payloads

        Returns
        -------
        int
            Number of retrieved bulk data elements

        Raises
        ------
        srmeasurements.errors.BulkDataRetrievalError
            When the retrieval of a bulk data element failed. The content
            remains unresolved and resolution can be retried.

        """
        if self._content is not None:
            return 0
        content_metadata = copy.deepcopy(
            self._metadata[_CONTENT_SEQUENCE_TAG]
        )
        count = await resolve_bulk_data(
            content_metadata,
            retriever,
            study_instance_uid=self.StudyInstanceUID,
            series_instance_uid=self.SeriesInstanceUID,
            sop_instance_uid=self.SOPInstanceUID,
        )
        self._content = Dataset.from_json(
            {_CONTENT_SEQUENCE_TAG: content_metadata}
        )
        self._metadata[_CONTENT_SEQUENCE_TAG] = content_metadata
        logger.debug(
            f'resolved {count} bulk data elements of SR document '
            f'"{self.SOPInstanceUID}"'
        )
        return count


def srread(fp: Union[str, bytes, PathLike, BinaryIO]) -> SRDocument:
    """Read a Structured Report (SR) document in DICOM File format.

    Parameters
    ----------
    fp: Union[str, bytes, os.PathLike]
        Any file-like object representing a DICOM file containing an SR
        document.

    Raises
    ------
    RuntimeError:
        If the DICOM file does not contain an SR document that can be loaded.

    Returns
    -------
    srmeasurements.sr.SRDocument
        Structured Report document read from the file.

    """
    dcm = dcmread(fp)

    sop_class_uid = dcm.SOPClassUID
    if sop_class_uid in SR_SOP_CLASS_UIDS + SR_3D_SOP_CLASS_UIDS:
        return SRDocument.from_dataset(dcm)
    else:
        iod_name = UID_dictionary.get(sop_class_uid, ('unknown',))[0]
        raise RuntimeError(
            f'SOP Class UID {sop_class_uid} "{iod_name}" is not supported.'
        )
