import asyncio
import base64
import unittest

import numpy as np
import pytest

from srmeasurements.errors import BulkDataRetrievalError
from srmeasurements.services import LocalDataSource
from srmeasurements.sr.bulkdata import decode_float_payload, resolve_bulk_data

from .utils import encode_float_payload


class RecordingDataSource(LocalDataSource):

    def __init__(self, bulk_data=None, failing_uris=()):
        super().__init__(bulk_data)
        self.failing_uris = set(failing_uris)
        self.requests = []

    async def retrieve_bulk_data(
        self,
        bulk_data_uri,
        study_instance_uid,
        series_instance_uid,
        sop_instance_uid
    ):
        self.requests.append((
            bulk_data_uri,
            study_instance_uid,
            series_instance_uid,
            sop_instance_uid,
        ))
        await asyncio.sleep(0)
        if bulk_data_uri in self.failing_uris:
            raise ConnectionError(f'cannot reach "{bulk_data_uri}"')
        return await super().retrieve_bulk_data(
            bulk_data_uri,
            study_instance_uid,
            series_instance_uid,
            sop_instance_uid
        )


def _resolve(node, data_source):
    return asyncio.run(
        resolve_bulk_data(node, data_source, '1.1', '1.2', '1.3')
    )


def test_decode_float_payload():
    values = decode_float_payload(encode_float_payload([1.5, -2.0, 3.25]))
    np.testing.assert_array_equal(values, [1.5, -2.0, 3.25])
    assert values.dtype == np.float32


def test_decode_float_payload_invalid_length():
    with pytest.raises(ValueError):
        decode_float_payload(b'\x00\x00\x00')


class TestResolveBulkData(unittest.TestCase):

    def setUp(self):
        super().setUp()
        self._data_source = RecordingDataSource({
            'https://host/bulk/1': encode_float_payload([10, 20, 30, 40]),
            'https://host/bulk/2': encode_float_payload([1, 2, 3]),
            'https://host/bulk/3': b'\x01\x02\x03',
        })

    def test_nested_references(self):
        node = [
            {
                '0040A730': {
                    'vr': 'SQ',
                    'Value': [
                        {
                            '00700022': {
                                'vr': 'FL',
                                'BulkDataURI': 'https://host/bulk/1',
                            },
                        },
                        {
                            '00700022': {
                                'vr': 'FL',
                                'BulkDataURI': 'https://host/bulk/2',
                            },
                        },
                    ],
                },
            },
        ]
        count = _resolve(node, self._data_source)
        assert count == 2
        items = node[0]['0040A730']['Value']
        assert items[0]['00700022'] == {
            'vr': 'FL',
            'Value': [10.0, 20.0, 30.0, 40.0],
        }
        assert items[1]['00700022']['Value'] == [1.0, 2.0, 3.0]
        assert self._data_source.requests[0][1:] == ('1.1', '1.2', '1.3')

    def test_binary_value_representation(self):
        node = {'00420011': {'vr': 'OB', 'BulkDataURI': 'https://host/bulk/3'}}
        count = _resolve(node, self._data_source)
        assert count == 1
        attribute = node['00420011']
        assert 'BulkDataURI' not in attribute
        assert base64.b64decode(attribute['InlineBinary']) == b'\x01\x02\x03'

    def test_no_references(self):
        node = [{'0040A160': {'vr': 'UT', 'Value': ['text']}}]
        assert _resolve(node, self._data_source) == 0
        assert self._data_source.requests == []

    def test_failure_does_not_block_siblings(self):
        self._data_source.failing_uris.add('https://host/bulk/1')
        node = [
            {'00700022': {'vr': 'FL', 'BulkDataURI': 'https://host/bulk/1'}},
            {'00700022': {'vr': 'FL', 'BulkDataURI': 'https://host/bulk/2'}},
        ]
        with pytest.raises(BulkDataRetrievalError) as exc_info:
            _resolve(node, self._data_source)
        error = exc_info.value
        assert error.bulk_data_uri == 'https://host/bulk/1'
        assert error.path == '[0]/00700022'
        assert isinstance(error.__cause__, ConnectionError)
        assert node[1]['00700022']['Value'] == [1.0, 2.0, 3.0]
        assert node[0]['00700022']['BulkDataURI'] == 'https://host/bulk/1'

    def test_missing_payload(self):
        node = [{'00700022': {'vr': 'FL', 'BulkDataURI': 'https://host/x'}}]
        with pytest.raises(BulkDataRetrievalError) as exc_info:
            _resolve(node, self._data_source)
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_undecodable_payload(self):
        self._data_source.add_bulk_data('https://host/bulk/5', b'\x00' * 5)
        node = [
            {'00700022': {'vr': 'FL', 'BulkDataURI': 'https://host/bulk/2'}},
            {'00700022': {'vr': 'FL', 'BulkDataURI': 'https://host/bulk/5'}},
        ]
        with pytest.raises(BulkDataRetrievalError) as exc_info:
            _resolve(node, self._data_source)
        error = exc_info.value
        assert error.bulk_data_uri == 'https://host/bulk/5'
        assert error.path == '[1]/00700022'
        assert isinstance(error.__cause__, ValueError)
        assert node[1]['00700022'] == {
            'vr': 'FL',
            'BulkDataURI': 'https://host/bulk/5',
        }
