"""Enumerate values of Structured Report content items that are interpreted
when measurements are extracted."""
from enum import Enum


class ValueTypeValues(Enum):

    """Enumerated values for attribute Value Type.

    See :dcm:`Table C.17.3.2.1 <part03/sect_C.17.3.2.html#sect_C.17.3.2.1>`.

    """

    CODE = 'CODE'
    """Coded expression of the concept."""

    CONTAINER = 'CONTAINER'
    """Collection of the contained Content Items."""

    IMAGE = 'IMAGE'
    """Reference to UIDs of Image Composite SOP Instances."""

    NUM = 'NUM'
    """Numeric value and associated Unit of Measurement."""

    SCOORD = 'SCOORD'
    """Listing of spatial coordinates defined in 2D pixel matrix."""

    SCOORD3D = 'SCOORD3D'
    """Listing of spatial coordinates defined in 3D frame of reference."""

    TEXT = 'TEXT'
    """Textual expression of the concept."""

    UIDREF = 'UIDREF'
    """Unique Identifier."""


SPATIAL_VALUE_TYPES = frozenset({
    ValueTypeValues.SCOORD.value,
    ValueTypeValues.SCOORD3D.value,
})


class GraphicTypeValues(Enum):

    """Enumerated values for attribute Graphic Type of SCOORD and SCOORD3D
    content items.

    See :dcm:`C.18.6.1.1 <part03/sect_C.18.6.html#sect_C.18.6.1.1>` and
    :dcm:`C.18.9.1.2 <part03/sect_C.18.9.html#sect_C.18.9.1.2>`.

    """

    CIRCLE = 'CIRCLE'
    """A circle defined by its center and a point on its perimeter."""

    ELLIPSE = 'ELLIPSE'
    """An ellipse defined by the endpoints of its major and minor axes."""

    ELLIPSOID = 'ELLIPSOID'
    """An ellipsoid defined by the endpoints of its three axes (3D only)."""

    MULTIPOINT = 'MULTIPOINT'
    """Multiple independent points."""

    POINT = 'POINT'
    """A single point."""

    POLYGON = 'POLYGON'
    """A closed polygon (3D only)."""

    POLYLINE = 'POLYLINE'
    """Connected line segments.

    If the first and last coordinates are the same it is a closed polygon.

    """
