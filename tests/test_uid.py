import unittest

import pydicom

from srmeasurements.uid import UID


class TestUID(unittest.TestCase):

    def test_construction_without_value(self):
        uid = UID()
        assert isinstance(uid, str)
        assert isinstance(uid, pydicom.uid.UID)
        assert uid.startswith(pydicom.uid.PYDICOM_ROOT_UID)
        assert uid.is_valid

    def test_construction_without_value_is_unique(self):
        assert UID() != UID()

    def test_construction_with_value(self):
        value = '1.2.3.4'
        uid = UID(value)
        assert uid == value
