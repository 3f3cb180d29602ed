"""Measurements and references extracted from SR document content."""
from typing import Any, List, Optional, Sequence

import numpy as np
from pydicom.dataset import Dataset

from srmeasurements.errors import AlreadyBoundError
from srmeasurements.sr.enum import ValueTypeValues
from srmeasurements.sr.utils import get_sequence, get_value_type


def _get_first_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (str, bytes)):
        return value
    try:
        return value[0] if len(value) > 0 else None
    except TypeError:
        return value


class Coordinate:

    """Spatial coordinates of a SCOORD or SCOORD3D content item together with
    the image or frame of reference they are defined in."""

    def __init__(
        self,
        value_type: str,
        graphic_type: Optional[str],
        graphic_data: Sequence[float],
        referenced_sop_instance_uid: Optional[str] = None,
        referenced_frame_number: Optional[int] = None,
        referenced_frame_of_reference_uid: Optional[str] = None
    ) -> None:
        """
        Parameters
        ----------
        value_type: str
            Value type of the content item (``"SCOORD"`` or ``"SCOORD3D"``)
        graphic_type: Union[str, None]
            Graphic type, e.g. ``"POLYLINE"``
        graphic_data: Sequence[float]
            Flat list of coordinates, two values per point for SCOORD and
            three values per point for SCOORD3D
        referenced_sop_instance_uid: Union[str, None], optional
            SOP Instance UID of the image in which 2D coordinates are defined
        referenced_frame_number: Union[int, None], optional
            Number of the frame in which 2D coordinates are defined
        referenced_frame_of_reference_uid: Union[str, None], optional
            Frame of reference in which 3D coordinates are defined

        """
        if value_type not in (
            ValueTypeValues.SCOORD.value,
            ValueTypeValues.SCOORD3D.value,
        ):
            raise ValueError(
                f'Coordinates cannot have value type "{value_type}".'
            )
        self.value_type = value_type
        self.graphic_type = graphic_type
        self.graphic_data = [float(v) for v in graphic_data]
        self.referenced_sop_instance_uid = referenced_sop_instance_uid
        self.referenced_frame_number = referenced_frame_number
        self.referenced_frame_of_reference_uid = \
            referenced_frame_of_reference_uid

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Coordinate):
            return NotImplemented
        return (
            self.value_type == other.value_type and
            self.graphic_type == other.graphic_type and
            self.graphic_data == other.graphic_data and
            self.referenced_sop_instance_uid ==
            other.referenced_sop_instance_uid and
            self.referenced_frame_number == other.referenced_frame_number and
            self.referenced_frame_of_reference_uid ==
            other.referenced_frame_of_reference_uid
        )

    def __repr__(self) -> str:
        return (
            f'Coordinate(value_type={self.value_type!r}, '
            f'graphic_type={self.graphic_type!r}, '
            f'graphic_data={self.graphic_data!r})'
        )

    @property
    def is_3d(self) -> bool:
        """bool: whether coordinates are defined in a 3D frame of reference"""
        return self.value_type == ValueTypeValues.SCOORD3D.value

    @property
    def dimensions(self) -> int:
        """int: number of values per point"""
        return 3 if self.is_3d else 2

    @property
    def points(self) -> np.ndarray:
        """numpy.ndarray: n x 2 or n x 3 array of points"""
        data = np.asarray(self.graphic_data, dtype=np.float64)
        if data.size % self.dimensions != 0:
            raise ValueError(
                f'Graphic data of {self.value_type} has {data.size} values, '
                f'which is not a multiple of {self.dimensions}.'
            )
        return data.reshape(-1, self.dimensions)

    def references(
        self,
        sop_instance_uid: str,
        frame_number: Optional[int] = None
    ) -> bool:
        """Check whether coordinates are defined in a given image frame.

        Parameters
        ----------
        sop_instance_uid: str
            SOP Instance UID of the image
        frame_number: Union[int, None], optional
            Number of the frame. A missing referenced frame number is
            interpreted as the first frame.

        Returns
        -------
        bool
            Whether the image frame is referenced

        """
        if self.referenced_sop_instance_uid != sop_instance_uid:
            return False
        if frame_number is None:
            return True
        return int(self.referenced_frame_number or 1) == int(frame_number)

    @classmethod
    def from_content_item(cls, item: Dataset) -> 'Coordinate':
        """Construct coordinates from a SCOORD or SCOORD3D content item.

        The referenced image is looked up on the item itself and in its
        nested content items (``SELECTED FROM`` relationship). The frame of
        reference is looked up the same way.

        Parameters
        ----------
        item: pydicom.dataset.Dataset
            Content item of value type SCOORD or SCOORD3D

        Returns
        -------
        srmeasurements.sr.Coordinate
            Coordinates

        """
        graphic_data = item.get('GraphicData', None)
        if graphic_data is None:
            graphic_data = []
        elif isinstance(graphic_data, (int, float)):
            graphic_data = [graphic_data]

        sop_instance_uid = None
        frame_number = None
        frame_of_reference_uid = item.get(
            'ReferencedFrameOfReferenceUID',
            None
        )
        candidates = [item] + get_sequence(item, 'ContentSequence')
        for candidate in candidates:
            references = get_sequence(candidate, 'ReferencedSOPSequence')
            if sop_instance_uid is None and len(references) > 0:
                reference = references[0]
                sop_instance_uid = reference.get(
                    'ReferencedSOPInstanceUID',
                    None
                )
                number = _get_first_value(
                    reference.get('ReferencedFrameNumber', None)
                )
                if number is not None:
                    frame_number = int(number)
            if frame_of_reference_uid is None:
                frame_of_reference_uid = candidate.get(
                    'ReferencedFrameOfReferenceUID',
                    None
                )

        return cls(
            value_type=get_value_type(item),
            graphic_type=item.get('GraphicType', None),
            graphic_data=graphic_data,
            referenced_sop_instance_uid=sop_instance_uid,
            referenced_frame_number=frame_number,
            referenced_frame_of_reference_uid=frame_of_reference_uid,
        )


class MeasurementLabel:

    """Label of a measurement, e.g. ``Long Axis: 31.00 mm``."""

    def __init__(self, label: str, value: Optional[str]) -> None:
        self.label = label
        self.value = value

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, MeasurementLabel):
            return NotImplemented
        return self.label == other.label and self.value == other.value

    def __repr__(self) -> str:
        return f'MeasurementLabel(label={self.label!r}, value={self.value!r})'

    def __str__(self) -> str:
        return f'{self.label}: {self.value}'


class Measurement:

    """Measurement extracted from a Measurement Group of an SR document.

    A measurement starts out unbound (``loaded`` is ``False``) and becomes
    bound once it has been matched to an image or frame of reference. Bound
    measurements are never unbound again.

    """

    def __init__(
        self,
        tracking_unique_identifier: str,
        tracking_identifier: str,
        labels: Optional[Sequence[MeasurementLabel]] = None,
        coords: Optional[Sequence[Coordinate]] = None,
        graphic_type: Optional[str] = None,
        graphic_code: Optional[str] = None,
        is_3d_measurement: bool = False,
        points_length: Optional[int] = None,
        measurement_type: Optional[str] = None
    ) -> None:
        """
        Parameters
        ----------
        tracking_unique_identifier: str
            Unique identifier of the measurement
        tracking_identifier: str
            Human readable identifier of the measurement
        labels: Union[Sequence[srmeasurements.sr.MeasurementLabel], None], optional
            Labels of measured values and findings
        coords: Union[Sequence[srmeasurements.sr.Coordinate], None], optional
            Coordinates. Geometric measurements have exactly one, other
            measurements may have zero or more (inferred from coordinates).
        graphic_type: Union[str, None], optional
            Graphic type of geometric measurements
        graphic_code: Union[str, None], optional
            Concept name of the graphic content item in the form
            ``"<scheme designator>:<code value>"``
        is_3d_measurement: bool, optional
            Whether coordinates are defined in a 3D frame of reference
        points_length: Union[int, None], optional
            Expected number of points of the geometry
        measurement_type: Union[str, None], optional
            Type of the measurement, ``"point"`` for SCOORD3D points

        """  # noqa: E501
        self.tracking_unique_identifier = tracking_unique_identifier
        self.tracking_identifier = tracking_identifier
        self.labels: List[MeasurementLabel] = list(labels or [])
        self.coords: List[Coordinate] = list(coords or [])
        self.graphic_type = graphic_type
        self.graphic_code = graphic_code
        self.is_3d_measurement = is_3d_measurement
        self.points_length = points_length
        self.measurement_type = measurement_type
        self.loaded = False
        self.image_id: Optional[str] = None
        self.display_set_instance_uid: Optional[str] = None
        self.frame_number: Optional[int] = None
        self.referenced_sop_instance_uid: Optional[str] = None
        self.frame_of_reference_uid: Optional[str] = None

    def __repr__(self) -> str:
        return (
            'Measurement('
            f'tracking_unique_identifier={self.tracking_unique_identifier!r}, '
            f'tracking_identifier={self.tracking_identifier!r}, '
            f'graphic_type={self.graphic_type!r}, loaded={self.loaded!r})'
        )

    @property
    def primary_coordinate(self) -> Optional[Coordinate]:
        """Union[srmeasurements.sr.Coordinate, None]: first coordinate"""
        if len(self.coords) == 0:
            return None
        return self.coords[0]

    def bind_to_image(
        self,
        image_id: str,
        display_set_instance_uid: str,
        sop_instance_uid: str,
        frame_number: int,
        frame_of_reference_uid: Optional[str] = None
    ) -> None:
        """Bind the measurement to an image frame.

        Raises
        ------
        srmeasurements.errors.AlreadyBoundError
            When the measurement has already been bound

        """
        if self.loaded:
            raise AlreadyBoundError(
                f'Measurement "{self.tracking_unique_identifier}" has already '
                'been bound.'
            )
        self.loaded = True
        self.image_id = image_id
        self.display_set_instance_uid = display_set_instance_uid
        self.referenced_sop_instance_uid = sop_instance_uid
        self.frame_number = frame_number
        self.frame_of_reference_uid = frame_of_reference_uid

    def bind_to_frame_of_reference(
        self,
        display_set_instance_uid: str,
        frame_of_reference_uid: str
    ) -> None:
        """Bind the measurement to a 3D frame of reference.

        Raises
        ------
        srmeasurements.errors.AlreadyBoundError
            When the measurement has already been bound

        """
        if self.loaded:
            raise AlreadyBoundError(
                f'Measurement "{self.tracking_unique_identifier}" has already '
                'been bound.'
            )
        self.loaded = True
        self.display_set_instance_uid = display_set_instance_uid
        self.frame_of_reference_uid = frame_of_reference_uid


class ReferencedImage:

    """Image referenced in the Image Library of an SR document."""

    def __init__(
        self,
        referenced_sop_class_uid: str,
        referenced_sop_instance_uid: Optional[str]
    ) -> None:
        self.ReferencedSOPClassUID = referenced_sop_class_uid
        self.ReferencedSOPInstanceUID = referenced_sop_instance_uid

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ReferencedImage):
            return NotImplemented
        return (
            self.ReferencedSOPClassUID == other.ReferencedSOPClassUID and
            self.ReferencedSOPInstanceUID == other.ReferencedSOPInstanceUID
        )

    def __repr__(self) -> str:
        return (
            f'ReferencedImage({self.ReferencedSOPClassUID!r}, '
            f'{self.ReferencedSOPInstanceUID!r})'
        )
