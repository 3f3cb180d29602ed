"""Conversion of measurements into annotations of the rendering engine."""
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import numpy as np

from srmeasurements.rehydration import (
    DEFAULT_TOOL_ADAPTERS,
    ToolAdapterRegistry,
)
from srmeasurements.sr.content import (
    Coordinate,
    Measurement,
    MeasurementLabel,
)
from srmeasurements.sr.enum import GraphicTypeValues

logger = logging.getLogger(__name__)


# Offset of the second handle of lines that are synthesized for 3D points
POINT_HANDLE_OFFSET = np.array([10.0, 0.0, 10.0])


class ToolNames:

    """Names of the tools that display annotations of SR documents."""

    DICOMSRDisplay = 'DICOMSRDisplay'
    SRSCOORD3DPoint = 'SRSCOORD3DPoint'
    SRArrowAnnotate = 'SRArrowAnnotate'


class Annotation:

    """Annotation of the rendering engine that displays a measurement."""

    def __init__(
        self,
        annotation_uid: str,
        tool_name: str,
        points: np.ndarray,
        renderable_data: Dict[str, List[np.ndarray]],
        labels: List[MeasurementLabel],
        frame_of_reference_uid: Optional[str] = None,
        referenced_image_id: Optional[str] = None,
        frame_number: Optional[int] = None,
        label: Optional[str] = None,
        text: Optional[str] = None,
        is_3d_measurement: bool = False
    ) -> None:
        self.annotation_uid = annotation_uid
        self.tool_name = tool_name
        self.points = points
        self.renderable_data = renderable_data
        self.labels = labels
        self.frame_of_reference_uid = frame_of_reference_uid
        self.referenced_image_id = referenced_image_id
        self.frame_number = frame_number
        self.label = label
        self.text = text
        self.is_3d_measurement = is_3d_measurement
        self.highlighted = False
        self.is_locked = False
        self.invalidated = False

    def __repr__(self) -> str:
        return (
            f'Annotation(annotation_uid={self.annotation_uid!r}, '
            f'tool_name={self.tool_name!r})'
        )

    @property
    def tracking_unique_identifier(self) -> str:
        """str: tracking unique identifier of the displayed measurement"""
        return self.annotation_uid

    @property
    def label_text(self) -> str:
        """str: one ``label: value`` line per label of the measurement"""
        return '\n'.join(str(label) for label in self.labels)

    def to_dict(self) -> Dict[str, Any]:
        """Get the representation consumed by the rendering engine.

        Returns
        -------
        Dict[str, Any]
            Annotation with camel case keys. Annotations of 3D measurements
            have no ``referencedImageId``.

        """
        metadata: Dict[str, Any] = {
            'toolName': self.tool_name,
            'FrameOfReferenceUID': self.frame_of_reference_uid,
        }
        if not self.is_3d_measurement:
            metadata['referencedImageId'] = self.referenced_image_id
        data: Dict[str, Any] = {
            'label': self.label,
            'labelText': self.label_text,
            'handles': {
                'points': self.points.tolist(),
                'activeHandleIndex': None,
                'textBox': {},
            },
            'cachedStats': {},
            'frameNumber': self.frame_number,
            'renderableData': {
                graphic_type: [points.tolist() for points in groups]
                for graphic_type, groups in self.renderable_data.items()
            },
            'TrackingUniqueIdentifier': self.annotation_uid,
            'labels': [
                {'label': label.label, 'value': label.value}
                for label in self.labels
            ],
        }
        if self.text is not None:
            data['text'] = self.text
        if self.is_3d_measurement:
            data['is3DMeasurement'] = True
        return {
            'annotationUID': self.annotation_uid,
            'highlighted': self.highlighted,
            'isLocked': self.is_locked,
            'invalidated': self.invalidated,
            'metadata': metadata,
            'data': data,
        }


def get_renderable_data(coordinate: Coordinate) -> np.ndarray:
    """Get the points of coordinates as point vectors.

    Parameters
    ----------
    coordinate: srmeasurements.sr.Coordinate
        Coordinates of a SCOORD or SCOORD3D content item

    Returns
    -------
    numpy.ndarray
        n x 2 array of image coordinates or n x 3 array of world coordinates

    """
    return coordinate.points


def build_annotation(
    measurement: Measurement,
    image_id: Optional[str],
    frame_number: Optional[int],
    frame_of_reference_uid: Optional[str] = None,
    adapters: ToolAdapterRegistry = DEFAULT_TOOL_ADAPTERS
) -> Annotation:
    """Build the annotation that displays a measurement.

    Parameters
    ----------
    measurement: srmeasurements.sr.Measurement
        Measurement with at least one coordinate
    image_id: Union[str, None]
        Image in which the measurement is displayed (``None`` for
        measurements in a 3D frame of reference)
    frame_number: Union[int, None]
        Frame in which the measurement is displayed
    frame_of_reference_uid: Union[str, None], optional
        Frame of reference of the annotation. By default, the one the
        measurement or its coordinates are defined in.
    adapters: srmeasurements.rehydration.ToolAdapterRegistry, optional
        Adapters used to determine whether a 3D measurement has a dedicated
        tool

    Returns
    -------
    srmeasurements.annotation.Annotation
        Annotation with the measurement's tracking unique identifier as UID

    Raises
    ------
    ValueError
        When the measurement has no coordinates

    """
    coordinate = measurement.primary_coordinate
    if coordinate is None:
        raise ValueError(
            f'Measurement "{measurement.tracking_unique_identifier}" has no '
            'coordinates and cannot be annotated.'
        )

    renderable_data: Dict[str, List[np.ndarray]] = OrderedDict()
    for coord in measurement.coords:
        renderable_data.setdefault(coord.graphic_type, []).append(
            get_renderable_data(coord)
        )

    if frame_of_reference_uid is None:
        frame_of_reference_uid = (
            measurement.frame_of_reference_uid or
            coordinate.referenced_frame_of_reference_uid
        )
    labels = list(measurement.labels)
    graphic_type = coordinate.graphic_type
    is_point = graphic_type == GraphicTypeValues.POINT.value

    tool_name = ToolNames.DICOMSRDisplay
    if coordinate.is_3d:
        if is_point:
            tool_name = ToolNames.SRSCOORD3DPoint
        elif adapters.get_adapter_for_tracking_identifier(
            measurement.tracking_identifier
        ) is None:
            tool_name = ToolNames.SRArrowAnnotate

    if coordinate.is_3d and is_point and len(coordinate.graphic_data) >= 3:
        point = np.array(coordinate.graphic_data[:3], dtype=np.float64)
        logger.debug(
            f'build {tool_name} annotation for 3D point of measurement '
            f'"{measurement.tracking_unique_identifier}"'
        )
        return Annotation(
            annotation_uid=measurement.tracking_unique_identifier,
            tool_name=tool_name,
            points=np.stack([point, point + POINT_HANDLE_OFFSET]),
            renderable_data=renderable_data,
            labels=labels,
            frame_of_reference_uid=frame_of_reference_uid,
            referenced_image_id=None,
            frame_number=None,
            label=measurement.tracking_identifier or 'SR Annotation',
            text=measurement.tracking_identifier or 'SR Point',
            is_3d_measurement=True,
        )

    return Annotation(
        annotation_uid=measurement.tracking_unique_identifier,
        tool_name=tool_name,
        points=renderable_data[graphic_type][0],
        renderable_data=renderable_data,
        labels=labels,
        frame_of_reference_uid=frame_of_reference_uid,
        referenced_image_id=image_id,
        frame_number=frame_number,
        label=labels[0].value if len(labels) > 0 else None,
        is_3d_measurement=image_id is None and coordinate.is_3d,
    )
