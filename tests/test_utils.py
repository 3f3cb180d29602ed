import unittest

import pytest
from pydicom.dataset import Dataset
from pydicom.sequence import Sequence

from srmeasurements import codes
from srmeasurements.sr.utils import (
    as_sequence,
    find_all,
    find_first,
    get_code_string,
    get_first_concept,
    get_sequence,
    has_concept_name,
    is_code,
    is_measurement_geometry,
    is_scoord3d_point,
    is_spatial_coordinate,
    is_text_position,
)
from srmeasurements.sr.content import Coordinate

from .utils import (
    create_code,
    create_content_item,
    create_scoord3d_item,
    create_scoord_item,
    create_text_position_item,
    create_uidref_item,
)


@pytest.mark.parametrize(
    'value,expected_length',
    [
        (None, 0),
        ([], 0),
        (Dataset(), 1),
        ({'00080100': {'vr': 'SH'}}, 1),
        ([Dataset(), Dataset()], 2),
        (Sequence([Dataset(), Dataset(), Dataset()]), 3),
    ]
)
def test_as_sequence(value, expected_length):
    items = as_sequence(value)
    assert isinstance(items, list)
    assert len(items) == expected_length


class TestContentTreeNormalizer(unittest.TestCase):

    def setUp(self):
        super().setUp()
        self._tracking_uid_item = create_uidref_item('1.2.3')

    def test_get_sequence_missing(self):
        assert get_sequence(Dataset(), 'ContentSequence') == []
        assert get_sequence(None, 'ContentSequence') == []

    def test_get_sequence_single_item(self):
        item = Dataset()
        child = Dataset()
        item.ContentSequence = [child]
        items = get_sequence(item, 'ContentSequence')
        assert len(items) == 1
        assert items[0] is child

    def test_get_first_concept(self):
        concept = get_first_concept(self._tracking_uid_item)
        assert concept.CodeValue == codes.TrackingUniqueIdentifier.value

    def test_get_first_concept_empty(self):
        item = Dataset()
        item.ConceptNameCodeSequence = []
        assert get_first_concept(item) is None
        assert get_first_concept(Dataset()) is None

    def test_get_code_string(self):
        code = create_code(codes.Finding)
        assert get_code_string(code, 'CodeMeaning') == 'Finding'
        assert get_code_string(code, 'CodeVersion') is None
        assert get_code_string(None, 'CodeMeaning') is None

    def test_has_concept_name(self):
        assert has_concept_name(
            self._tracking_uid_item,
            codes.TrackingUniqueIdentifier
        )
        assert not has_concept_name(
            self._tracking_uid_item,
            codes.TrackingIdentifier
        )

    def test_has_concept_name_scheme(self):
        item = create_content_item('CODE', codes.FindingSite)
        assert has_concept_name(item, codes.FindingSite, match_scheme=True)
        assert not has_concept_name(
            item,
            codes.FindingSiteSCT,
            match_scheme=True
        )

    def test_is_code(self):
        code = create_code(codes.Comment)
        assert is_code(code, codes.Comment)
        assert not is_code(None, codes.Comment)

    def test_find_first_and_all(self):
        items = [Dataset(), self._tracking_uid_item, Dataset()]
        assert find_first(items, lambda i: 'UID' in i) is items[1]
        assert find_first(items, lambda i: 'TextValue' in i) is None
        assert len(find_all(items, lambda i: 'UID' not in i)) == 2


class TestSpatialCoordinatePredicates(unittest.TestCase):

    def setUp(self):
        super().setUp()
        self._scoord = create_scoord_item('POLYLINE', [1, 2, 3, 4], '1.2.3')
        self._scoord3d = create_scoord3d_item('POINT', [1, 2, 3], '1.2.4')
        self._text_position = create_text_position_item(5, 6, '1.2.3')

    def test_is_spatial_coordinate(self):
        assert is_spatial_coordinate(self._scoord)
        assert is_spatial_coordinate(self._scoord3d)
        assert not is_spatial_coordinate(create_uidref_item('1.2.3'))

    def test_is_text_position(self):
        assert is_text_position(self._text_position)
        assert not is_text_position(self._scoord)

    def test_is_measurement_geometry(self):
        assert is_measurement_geometry(self._scoord)
        assert is_measurement_geometry(self._scoord3d)
        assert not is_measurement_geometry(self._text_position)

    def test_is_scoord3d_point(self):
        assert is_scoord3d_point(self._scoord3d)
        assert not is_scoord3d_point(self._scoord)
        coordinate = Coordinate.from_content_item(self._scoord3d)
        assert is_scoord3d_point(coordinate)
