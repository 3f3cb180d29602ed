"""Checks whether measurements of SR documents can become editable tool
annotations again."""
import logging
from typing import Any, Iterable, List, Optional, Sequence

from srmeasurements.sr.enum import GraphicTypeValues, ValueTypeValues

logger = logging.getLogger(__name__)


CORNERSTONE_3D_TAG = 'Cornerstone3DTools@^0.1.0'
CORNERSTONE_4_TAG = 'cornerstoneTools@^4.0.0'

ARROW_ANNOTATE = 'ArrowAnnotate'


class ToolAdapter:

    """Adapter between the measurements of an SR document and an annotation
    tool."""

    def __init__(
        self,
        tool_type: str,
        graphic_type: Optional[str] = None,
        points_length: Optional[int] = None,
        graphic_code: Optional[str] = None,
        tracking_identifiers: Optional[Sequence[str]] = None
    ) -> None:
        """
        Parameters
        ----------
        tool_type: str
            Type of the annotation tool, e.g. ``"Length"``
        graphic_type: Union[str, None], optional
            Graphic type of measurements created by the tool
        points_length: Union[int, None], optional
            Number of points of measurements created by the tool (any number
            if ``None``)
        graphic_code: Union[str, None], optional
            Concept name of the graphic content item in the form
            ``"<scheme designator>:<code value>"``
        tracking_identifiers: Union[Sequence[str], None], optional
            Tracking identifiers of measurements created by the tool. By
            default, the tool type prefixed by a Cornerstone tag.

        """
        self.tool_type = tool_type
        self.graphic_type = graphic_type
        self.points_length = points_length
        self.graphic_code = graphic_code
        if tracking_identifiers is None:
            tracking_identifiers = [
                f'{CORNERSTONE_3D_TAG}:{tool_type}',
                f'{CORNERSTONE_4_TAG}:{tool_type}',
            ]
        self.tracking_identifiers = list(tracking_identifiers)

    def __repr__(self) -> str:
        return f'ToolAdapter({self.tool_type!r})'

    def matches_tracking_identifier(self, tracking_identifier: str) -> bool:
        return tracking_identifier in self.tracking_identifiers

    def matches_types(
        self,
        graphic_code: Optional[str],
        graphic_type: Optional[str],
        points_length: Optional[int]
    ) -> bool:
        if self.graphic_type is None or graphic_type != self.graphic_type:
            return False
        if self.points_length is not None and \
                points_length != self.points_length:
            return False
        if self.graphic_code is not None and graphic_code != self.graphic_code:
            return False
        return True


class ToolAdapterRegistry:

    """Registry of tool adapters."""

    def __init__(self, adapters: Optional[Iterable[ToolAdapter]] = None):
        self._adapters: List[ToolAdapter] = []
        for adapter in adapters or []:
            self.register(adapter)

    def __iter__(self):
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    def register(self, adapter: ToolAdapter) -> None:
        self._adapters.append(adapter)

    def get_adapter_for_tracking_identifier(
        self,
        tracking_identifier: Optional[str]
    ) -> Optional[ToolAdapter]:
        """Get the adapter of the tool that created a measurement.

        Parameters
        ----------
        tracking_identifier: Union[str, None]
            Tracking identifier of the measurement

        Returns
        -------
        Union[srmeasurements.rehydration.ToolAdapter, None]
            Adapter, if any

        """
        if not tracking_identifier:
            return None
        for adapter in self._adapters:
            if adapter.matches_tracking_identifier(tracking_identifier):
                return adapter
        return None

    def get_adapters_for_types(
        self,
        graphic_code: Optional[str],
        graphic_type: Optional[str],
        points_length: Optional[int]
    ) -> List[ToolAdapter]:
        """Get the adapters of tools that create measurements of a given
        geometry.

        Adapters that require a specific graphic code are listed first.

        """
        matches = [
            adapter for adapter in self._adapters
            if adapter.matches_types(graphic_code, graphic_type, points_length)
        ]
        return sorted(matches, key=lambda a: a.graphic_code is None)


DEFAULT_TOOL_ADAPTERS = ToolAdapterRegistry([
    ToolAdapter('Length', GraphicTypeValues.POLYLINE.value, 2),
    ToolAdapter('Bidirectional', GraphicTypeValues.POLYLINE.value, 4),
    ToolAdapter(ARROW_ANNOTATE, GraphicTypeValues.POINT.value, 1),
    ToolAdapter('Probe', GraphicTypeValues.POINT.value, 1),
    ToolAdapter('Angle', GraphicTypeValues.POLYLINE.value, 3),
    ToolAdapter('CobbAngle', GraphicTypeValues.POLYLINE.value, 4),
    ToolAdapter('EllipticalROI', GraphicTypeValues.ELLIPSE.value, 4),
    ToolAdapter('CircleROI', GraphicTypeValues.CIRCLE.value, 2),
    ToolAdapter('RectangleROI', GraphicTypeValues.POLYLINE.value, 5),
    ToolAdapter('PlanarFreehandROI', GraphicTypeValues.POLYLINE.value),
])


def _is_scoord3d_point_measurement(measurement: Any) -> bool:
    coords = getattr(measurement, 'coords', None) or []
    first = coords[0] if len(coords) > 0 else None
    is_3d = (
        getattr(measurement, 'is_3d_measurement', False) or
        getattr(first, 'value_type', None) == ValueTypeValues.SCOORD3D.value
    )
    graphic_type = getattr(first, 'graphic_type', None)
    return (
        is_3d and
        graphic_type == GraphicTypeValues.POINT.value and
        getattr(measurement, 'points_length', None) == 1
    )


def is_rehydratable(
    display_set: Any,
    mappings: Optional[Iterable[Any]],
    adapters: ToolAdapterRegistry = DEFAULT_TOOL_ADAPTERS
) -> bool:
    """Check whether measurements of a display set can be rehydrated into
    editable annotations of the currently registered tools.

    Parameters
    ----------
    display_set: srmeasurements.SRDisplaySet
        Loaded SR display set
    mappings: Union[Iterable[srmeasurements.services.ToolMapping], None]
        Tool mappings that are currently registered
    adapters: srmeasurements.rehydration.ToolAdapterRegistry, optional
        Adapters between measurements and tools

    Returns
    -------
    bool
        Whether at least one measurement can be rehydrated

    """
    mappings = list(mappings or [])
    if len(mappings) == 0:
        return False

    annotation_types = {
        getattr(mapping, 'annotation_type', mapping) for mapping in mappings
    }

    for measurement in display_set.measurements or []:
        if measurement is None:
            continue

        tracking_identifier = measurement.tracking_identifier or ''
        if _is_scoord3d_point_measurement(measurement):
            if ARROW_ANNOTATE in annotation_types:
                logger.debug(
                    f'SCOORD3D POINT measurement "{tracking_identifier}" can '
                    f'be rehydrated as {ARROW_ANNOTATE}'
                )
                return True

        if not tracking_identifier and not measurement.graphic_type:
            logger.warning(
                'measurement has neither tracking identifier nor graphic type'
            )
            continue

        adapter = adapters.get_adapter_for_tracking_identifier(
            tracking_identifier
        )
        if adapter is not None and adapter.tool_type in annotation_types:
            return True

        candidates = adapters.get_adapters_for_types(
            measurement.graphic_code,
            measurement.graphic_type,
            measurement.points_length
        )
        if any(a.tool_type in annotation_types for a in candidates):
            return True

        logger.debug(
            f'measurement "{tracking_identifier}" is not rehydratable'
        )

    logger.debug('no measurement found that is rehydratable')
    return False
