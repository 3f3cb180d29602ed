"""Utilities for navigating the content tree of SR document instances.

Sequence attributes are always handled as lists of items, regardless of
whether a single item or a sequence of items was encoded.

"""
from typing import Any, Callable, Iterable, List, Optional, Union

from pydicom.dataset import Dataset
from pydicom.sr.coding import Code

from srmeasurements import codes
from srmeasurements.sr.enum import (
    GraphicTypeValues,
    SPATIAL_VALUE_TYPES,
    ValueTypeValues,
)


def as_sequence(value: Any) -> List[Dataset]:
    """Get the items of a sequence attribute value as a list.

    Parameters
    ----------
    value: Union[pydicom.sequence.Sequence, Sequence[pydicom.dataset.Dataset], pydicom.dataset.Dataset, None]
        Value of a sequence attribute, or a single item of a sequence

    Returns
    -------
    List[pydicom.dataset.Dataset]
        Items of the sequence (empty if `value` is ``None``)

    """  # noqa: E501
    if value is None:
        return []
    if isinstance(value, (Dataset, dict)):
        return [value]
    return list(value)


def get_sequence(item: Optional[Dataset], keyword: str) -> List[Dataset]:
    """Get the items of a sequence attribute of a content item.

    Parameters
    ----------
    item: Union[pydicom.dataset.Dataset, None]
        Content item
    keyword: str
        Keyword of the sequence attribute, e.g. ``"ContentSequence"``

    Returns
    -------
    List[pydicom.dataset.Dataset]
        Items of the sequence (empty if the attribute is missing)

    """
    if item is None:
        return []
    return as_sequence(item.get(keyword, None))


def get_first_code(
    item: Optional[Dataset],
    keyword: str
) -> Optional[Dataset]:
    """Get the first item of a code sequence attribute.

    Parameters
    ----------
    item: Union[pydicom.dataset.Dataset, None]
        Content item
    keyword: str
        Keyword of the code sequence attribute, e.g.
        ``"ConceptCodeSequence"``

    Returns
    -------
    Union[pydicom.dataset.Dataset, None]
        First code item, or ``None`` if the attribute is missing or empty

    """
    items = get_sequence(item, keyword)
    if len(items) == 0:
        return None
    return items[0]


def get_first_concept(item: Optional[Dataset]) -> Optional[Dataset]:
    """Get the concept name of a content item.

    Parameters
    ----------
    item: Union[pydicom.dataset.Dataset, None]
        Content item

    Returns
    -------
    Union[pydicom.dataset.Dataset, None]
        First item of the Concept Name Code Sequence, or ``None``

    """
    return get_first_code(item, 'ConceptNameCodeSequence')


def get_code_string(code: Optional[Dataset], keyword: str) -> Optional[str]:
    """Get a string attribute (e.g. ``CodeMeaning``) of a code item."""
    if code is None:
        return None
    value = code.get(keyword, None)
    if value is None:
        return None
    return str(value)


def has_concept_name(
    item: Dataset,
    code: Code,
    match_scheme: bool = False
) -> bool:
    """Check whether a content item has a given concept name.

    Parameters
    ----------
    item: pydicom.dataset.Dataset
        Content item
    code: pydicom.sr.coding.Code
        Coded concept name
    match_scheme: bool, optional
        Whether the coding scheme designator needs to match in addition to
        the code value

    Returns
    -------
    bool
        Whether the content item has the concept name

    """
    concept = get_first_concept(item)
    return is_code(concept, code, match_scheme=match_scheme)


def is_code(
    concept: Optional[Dataset],
    code: Code,
    match_scheme: bool = True
) -> bool:
    """Check whether a code item represents a given coded concept."""
    if concept is None:
        return False
    if get_code_string(concept, 'CodeValue') != code.value:
        return False
    if match_scheme:
        scheme = get_code_string(concept, 'CodingSchemeDesignator')
        return scheme == code.scheme_designator
    return True


def find_first(
    items: Iterable[Dataset],
    predicate: Callable[[Dataset], bool]
) -> Optional[Dataset]:
    """Find the first item that matches `predicate`."""
    for item in items:
        if predicate(item):
            return item
    return None


def find_all(
    items: Iterable[Dataset],
    predicate: Callable[[Dataset], bool]
) -> List[Dataset]:
    """Find all items that match `predicate`, preserving their order."""
    return [item for item in items if predicate(item)]


def get_value_type(item: Dataset) -> Optional[str]:
    value_type = item.get('ValueType', None)
    if isinstance(value_type, ValueTypeValues):
        return value_type.value
    return value_type


def is_spatial_coordinate(item: Dataset) -> bool:
    """Check whether a content item has value type SCOORD or SCOORD3D."""
    return get_value_type(item) in SPATIAL_VALUE_TYPES


def is_text_position(item: Dataset) -> bool:
    """Check whether a content item marks the position of a text annotation
    rather than the geometry of a measurement.

    """
    return has_concept_name(
        item,
        codes.TextAnnotationPosition,
        match_scheme=True
    )


def is_measurement_geometry(item: Dataset) -> bool:
    """Check whether a content item holds the geometry of a measurement."""
    return is_spatial_coordinate(item) and not is_text_position(item)


def is_scoord3d_point(item: Union[Dataset, Any]) -> bool:
    """Check whether a content item or coordinate is a SCOORD3D POINT.

    Such items are always interpreted as a single point, irrespective of the
    number of coordinate triplets contained in the Graphic Data.

    """
    if isinstance(item, Dataset):
        value_type = get_value_type(item)
        graphic_type = item.get('GraphicType', None)
    else:
        value_type = getattr(item, 'value_type', None)
        graphic_type = getattr(item, 'graphic_type', None)
    return (
        value_type == ValueTypeValues.SCOORD3D.value and
        graphic_type == GraphicTypeValues.POINT.value
    )
