import asyncio
import json
import unittest
from io import BytesIO

import pytest
from pydicom import dcmwrite
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.uid import (
    Comprehensive3DSRStorage,
    CTImageStorage,
    ExplicitVRLittleEndian,
    generate_uid,
)

from srmeasurements.errors import BulkDataRetrievalError
from srmeasurements.services import LocalDataSource
from srmeasurements.sr.sop import SRDocument, srread

from .utils import (
    LENGTH,
    MILLIMETER,
    create_json_report,
    create_measurement_group,
    create_num_item,
    create_report,
    create_report_content,
    create_scoord_item,
    encode_float_payload,
)


def _write_to_buffer(dataset: Dataset) -> BytesIO:
    dataset.file_meta = FileMetaDataset()
    dataset.file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
    dataset.file_meta.MediaStorageSOPClassUID = dataset.SOPClassUID
    dataset.file_meta.MediaStorageSOPInstanceUID = dataset.SOPInstanceUID
    fp = BytesIO()
    dcmwrite(fp, dataset, enforce_file_format=True)
    fp.seek(0)
    return fp


class TestSRDocument(unittest.TestCase):

    def setUp(self):
        super().setUp()
        self._image_uid = generate_uid()
        group = create_measurement_group(
            [
                create_scoord_item(
                    'POLYLINE',
                    [10, 20, 30, 40],
                    self._image_uid
                ),
                create_num_item(LENGTH, 28.28, MILLIMETER),
            ],
            tracking_uid=generate_uid(),
            tracking_identifier='Lesion 1'
        )
        self._report = create_report(
            create_report_content([group]),
            series_description='Measurements'
        )
        self._bulk_data_uri = 'https://host/bulk/graphic-data'
        self._data_source = LocalDataSource({
            self._bulk_data_uri: encode_float_payload([10, 20, 30, 40]),
        })

    def test_from_dataset(self):
        document = SRDocument.from_dataset(self._report)
        assert document.is_resolved
        assert not document.is_3d
        assert document.is_imaging_measurement_report
        assert document.SOPInstanceUID == self._report.SOPInstanceUID
        assert document.get('SeriesDescription') == 'Measurements'
        assert document.get('SeriesDate', 'unknown') == 'unknown'
        assert 'ContentSequence' not in document._header
        assert len(document.content_sequence) == 2

    def test_from_dataset_without_content(self):
        dataset = Dataset()
        dataset.SOPInstanceUID = generate_uid()
        with pytest.raises(ValueError):
            SRDocument.from_dataset(dataset)

    def test_construction_without_content(self):
        with pytest.raises(TypeError):
            SRDocument(header=Dataset())

    def test_missing_attribute(self):
        document = SRDocument.from_dataset(self._report)
        with pytest.raises(AttributeError):
            document.PatientName

    def test_from_json(self):
        metadata = create_json_report(self._report, [self._bulk_data_uri])
        document = SRDocument.from_json(metadata)
        assert not document.is_resolved
        assert document.StudyInstanceUID == self._report.StudyInstanceUID
        with pytest.raises(RuntimeError):
            document.content_sequence

        count = asyncio.run(document.resolve_bulk_data(self._data_source))
        assert count == 1
        assert document.is_resolved
        content = document.content_sequence
        group = content[1].ContentSequence[0]
        scoord = group.ContentSequence[2]
        assert list(scoord.GraphicData) == [10.0, 20.0, 30.0, 40.0]

        assert asyncio.run(document.resolve_bulk_data(self._data_source)) == 0

    def test_from_json_string(self):
        metadata = create_json_report(self._report)
        document = SRDocument.from_json(json.dumps(metadata))
        assert not document.is_resolved
        count = asyncio.run(document.resolve_bulk_data(self._data_source))
        assert count == 0
        assert len(document.content_sequence) == 2

    def test_from_json_does_not_modify_metadata(self):
        metadata = create_json_report(self._report, [self._bulk_data_uri])
        document = SRDocument.from_json(metadata)
        asyncio.run(document.resolve_bulk_data(self._data_source))
        assert self._bulk_data_uri in json.dumps(metadata)

    def test_resolution_failure_can_be_retried(self):
        metadata = create_json_report(self._report, ['https://host/missing'])
        document = SRDocument.from_json(metadata)
        with pytest.raises(BulkDataRetrievalError):
            asyncio.run(document.resolve_bulk_data(self._data_source))
        assert not document.is_resolved

        self._data_source.add_bulk_data(
            'https://host/missing',
            encode_float_payload([1, 2, 3, 4])
        )
        assert asyncio.run(document.resolve_bulk_data(self._data_source)) == 1
        assert document.is_resolved

    def test_is_3d(self):
        self._report.SOPClassUID = Comprehensive3DSRStorage
        document = SRDocument.from_dataset(self._report)
        assert document.is_3d


class TestSRRead(unittest.TestCase):

    def test_read_report(self):
        report = create_report(create_report_content([]))
        document = srread(_write_to_buffer(report))
        assert isinstance(document, SRDocument)
        assert document.SOPInstanceUID == report.SOPInstanceUID
        assert document.is_resolved

    def test_read_unsupported_sop_class(self):
        report = create_report(
            create_report_content([]),
            sop_class_uid=CTImageStorage
        )
        with pytest.raises(RuntimeError):
            srread(_write_to_buffer(report))
