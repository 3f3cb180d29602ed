"""Extraction of measurements from TID 1500 Measurement Report documents.

Measurement Groups (TID 1501 and TID 1410/1411) that share a Tracking Unique
Identifier describe the same logical measurement and are merged before
measurements are created from them.

"""
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Union

from pydicom.dataset import Dataset
from pydicom.multival import MultiValue

from srmeasurements import codes
from srmeasurements.sr.content import (
    Coordinate,
    Measurement,
    MeasurementLabel,
    ReferencedImage,
)
from srmeasurements.sr.enum import ValueTypeValues
from srmeasurements.sr.utils import (
    as_sequence,
    find_all,
    find_first,
    get_code_string,
    get_first_code,
    get_first_concept,
    get_sequence,
    get_value_type,
    has_concept_name,
    is_measurement_geometry,
    is_scoord3d_point,
    is_spatial_coordinate,
)
from srmeasurements.uid import UID

logger = logging.getLogger(__name__)


DEFAULT_TRACKING_IDENTIFIER = 'SR Measurement'


def _get_first_numeric_value(measured_value: Dataset) -> Optional[float]:
    value = measured_value.get('NumericValue', None)
    if isinstance(value, (MultiValue, list, tuple)):
        value = value[0] if len(value) > 0 else None
    if value is None or value == '':
        return None
    return float(value)


def format_measured_value(item: Dataset) -> MeasurementLabel:
    """Create the label of a content item with value type NUM.

    Parameters
    ----------
    item: pydicom.dataset.Dataset
        Content item of value type NUM

    Returns
    -------
    srmeasurements.sr.MeasurementLabel
        Label with the meaning of the concept name as label and the numeric
        value with two decimal places followed by the code value of the unit
        as value, e.g. ``Long Axis: 31.00 mm``

    """
    concept = get_first_concept(item)
    label = get_code_string(concept, 'CodeMeaning') or ''
    measured_value = get_first_code(item, 'MeasuredValueSequence')
    if measured_value is None:
        return MeasurementLabel(label=label, value='')

    numeric_value = _get_first_numeric_value(measured_value)
    if numeric_value is None:
        formatted_value = ''
    else:
        formatted_value = f'{numeric_value:.2f}'

    unit = get_first_code(measured_value, 'MeasurementUnitsCodeSequence')
    unit_value = get_code_string(unit, 'CodeValue')
    if unit_value:
        return MeasurementLabel(
            label=label,
            value=f'{formatted_value} {unit_value}'
        )
    return MeasurementLabel(label=label, value=formatted_value)


def _concept_meaning(concept: Optional[Dataset]) -> Optional[str]:
    return (
        get_code_string(concept, 'CodeMeaning') or
        get_code_string(concept, 'CodeValue')
    )


def _has_value_type(item: Dataset, value_type: ValueTypeValues) -> bool:
    return get_value_type(item) == value_type.value


def _get_tracking_unique_identifier(
    items: Sequence[Dataset]
) -> Optional[str]:
    item = find_first(
        items,
        lambda i: has_concept_name(i, codes.TrackingUniqueIdentifier)
    )
    if item is None:
        item = find_first(
            items,
            lambda i: _has_value_type(i, ValueTypeValues.UIDREF)
        )
    if item is None:
        return None
    return item.get('UID', None)


def _get_tracking_identifier(items: Sequence[Dataset]) -> Optional[str]:
    item = find_first(
        items,
        lambda i: has_concept_name(i, codes.TrackingIdentifier)
    )
    if item is None:
        return None
    return item.get('TextValue', None)


def _is_cornerstone_free_text(code: Optional[Dataset]) -> bool:
    if code is None:
        return False
    scheme = get_code_string(code, 'CodingSchemeDesignator')
    return (
        scheme in codes.CORNERSTONE_CODING_SCHEME_DESIGNATORS and
        get_code_string(code, 'CodeValue') ==
        codes.CORNERSTONE_FREE_TEXT_VALUE
    )


def _merge_measurement_groups(
    measurement_groups: Sequence[Dataset]
) -> Dict[str, List[Dataset]]:
    """Merge the content of Measurement Groups by Tracking Unique Identifier.

    The first group with a given identifier contributes all of its content
    items, later groups only the items that are not yet present. Groups
    without identifier are skipped.

    """
    merged: Dict[str, List[Dataset]] = OrderedDict()
    for group in measurement_groups:
        content_items = get_sequence(group, 'ContentSequence')
        tracking_uid_item = find_first(
            content_items,
            lambda i: has_concept_name(i, codes.TrackingUniqueIdentifier)
        )
        uid = None
        if tracking_uid_item is not None:
            uid = tracking_uid_item.get('UID', None)
        if not uid:
            logger.warning(
                'skip Measurement Group without Tracking Unique Identifier'
            )
            continue

        if uid not in merged:
            merged[uid] = list(content_items)
            continue

        target = merged[uid]
        for item in content_items:
            if has_concept_name(item, codes.TrackingUniqueIdentifier):
                continue
            if any(item is other or item == other for other in target):
                continue
            target.append(item)

    return merged


def _process_measurement(
    content_items: Sequence[Dataset]
) -> Optional[Measurement]:
    if any(is_measurement_geometry(item) for item in content_items):
        return _process_geometric_measurement(content_items)
    return _process_non_geometric_measurement(content_items)


def _process_geometric_measurement(
    content_items: Sequence[Dataset]
) -> Optional[Measurement]:
    """Create a measurement from a TID 1410 style group, which has a SCOORD
    or SCOORD3D content item at the top level."""
    graphic_item = find_first(content_items, is_measurement_geometry)
    if graphic_item is None:
        graphic_item = find_first(content_items, is_spatial_coordinate)
    if graphic_item is None:
        logger.warning('skip measurement without SCOORD or SCOORD3D')
        return None

    concept = get_first_concept(graphic_item)
    code_value = get_code_string(concept, 'CodeValue')
    scheme_designator = get_code_string(concept, 'CodingSchemeDesignator')
    graphic_code = None
    if scheme_designator and code_value:
        graphic_code = f'{scheme_designator}:{code_value}'

    coordinate = Coordinate.from_content_item(graphic_item)
    if is_scoord3d_point(coordinate):
        points_length = 1
        measurement_type: Optional[str] = 'point'
        logger.debug(
            f'interpret SCOORD3D POINT "{_concept_meaning(concept)}" with '
            f'{len(coordinate.graphic_data)} coordinate values as single point'
        )
    else:
        points_length = len(coordinate.graphic_data) // coordinate.dimensions
        measurement_type = None

    tracking_identifier = (
        _get_tracking_identifier(content_items) or
        get_code_string(concept, 'CodeMeaning') or
        DEFAULT_TRACKING_IDENTIFIER
    )
    measurement = Measurement(
        tracking_unique_identifier=(
            _get_tracking_unique_identifier(content_items) or UID()
        ),
        tracking_identifier=tracking_identifier,
        coords=[coordinate],
        graphic_type=coordinate.graphic_type,
        graphic_code=graphic_code,
        is_3d_measurement=coordinate.is_3d,
        points_length=points_length,
        measurement_type=measurement_type,
    )

    for item in content_items:
        if not _has_value_type(item, ValueTypeValues.NUM):
            continue
        if get_first_code(item, 'MeasuredValueSequence') is not None:
            measurement.labels.append(format_measured_value(item))

    finding_sites = find_all(
        content_items,
        lambda i: has_concept_name(i, codes.FindingSiteSCT, match_scheme=True)
    )
    if len(finding_sites) > 0:
        site = finding_sites[0]
        measurement.labels.append(
            MeasurementLabel(
                label=_concept_meaning(get_first_concept(site)),
                value=get_code_string(
                    get_first_code(site, 'ConceptCodeSequence'),
                    'CodeMeaning'
                )
            )
        )

    return measurement


def _process_non_geometric_measurement(
    content_items: Sequence[Dataset]
) -> Measurement:
    """Create a measurement from a group without top-level geometry, where
    NUM content items may be inferred from SCOORD or SCOORD3D items."""
    measurement = Measurement(
        tracking_unique_identifier=(
            _get_tracking_unique_identifier(content_items) or UID()
        ),
        tracking_identifier=(
            _get_tracking_identifier(content_items) or
            DEFAULT_TRACKING_IDENTIFIER
        ),
    )

    comments = find_all(
        content_items,
        lambda i: has_concept_name(i, codes.Comment, match_scheme=True)
    )
    for comment in comments:
        text = comment.get('TextValue', None)
        if text:
            measurement.labels.append(MeasurementLabel(label=text, value=''))

    finding = find_first(
        content_items,
        lambda i: has_concept_name(i, codes.Finding)
    )
    if finding is not None:
        code = get_first_code(finding, 'ConceptCodeSequence')
        if _is_cornerstone_free_text(code):
            measurement.labels.append(
                MeasurementLabel(
                    label=codes.CORNERSTONE_FREE_TEXT_VALUE,
                    value=get_code_string(code, 'CodeMeaning')
                )
            )

    finding_sites = find_all(
        content_items,
        lambda i: has_concept_name(i, codes.FindingSite, match_scheme=True)
    )
    for site in finding_sites:
        code = get_first_code(site, 'ConceptCodeSequence')
        if _is_cornerstone_free_text(code):
            measurement.labels.append(
                MeasurementLabel(
                    label=codes.CORNERSTONE_FREE_TEXT_VALUE,
                    value=get_code_string(code, 'CodeMeaning')
                )
            )
            break

    for item in content_items:
        if not _has_value_type(item, ValueTypeValues.NUM):
            continue
        nested_items = get_sequence(item, 'ContentSequence')
        graphic_item = find_first(nested_items, is_spatial_coordinate)
        if graphic_item is None and len(nested_items) > 0:
            value_type = get_value_type(nested_items[0])
            logger.warning(
                f'graphic {value_type} not supported, skip annotation'
            )
            continue
        if graphic_item is not None:
            coordinate = Coordinate.from_content_item(graphic_item)
            if len(coordinate.graphic_data) > 0:
                measurement.coords.append(coordinate)
        if get_first_code(item, 'MeasuredValueSequence') is not None:
            measurement.labels.append(format_measured_value(item))

    return measurement


def extract_measurements(
    report_content_sequence: Union[Sequence[Dataset], Dataset]
) -> List[Measurement]:
    """Extract measurements from the content of a Measurement Report.

    Parameters
    ----------
    report_content_sequence: Union[Sequence[pydicom.dataset.Dataset], pydicom.dataset.Dataset]
        Items of the Content Sequence of the document root

    Returns
    -------
    List[srmeasurements.sr.Measurement]
        Measurements in order of first appearance of their Tracking Unique
        Identifier

    Note
    ----
    If the document has no Imaging Measurements container, its top-level
    content items are interpreted as a single measurement, but only if they
    contain geometry. Likewise, a container without Measurement Groups is
    interpreted as a single measurement if it contains geometry.

    """  # noqa: E501
    report_items = as_sequence(report_content_sequence)
    imaging_measurements = find_first(
        report_items,
        lambda i: has_concept_name(i, codes.ImagingMeasurements)
    )

    if imaging_measurements is None:
        if any(is_measurement_geometry(item) for item in report_items):
            logger.debug(
                'no Imaging Measurements container, use top-level geometry'
            )
            measurement = _process_geometric_measurement(report_items)
            return [measurement] if measurement is not None else []
        return []

    container_items = get_sequence(imaging_measurements, 'ContentSequence')
    measurement_groups = find_all(
        container_items,
        lambda i: has_concept_name(i, codes.MeasurementGroup)
    )

    if len(measurement_groups) == 0:
        if any(is_measurement_geometry(item) for item in container_items):
            logger.debug(
                'no Measurement Groups, use geometry of Imaging Measurements'
            )
            measurement = _process_geometric_measurement(container_items)
            return [measurement] if measurement is not None else []

    merged_content_items = _merge_measurement_groups(measurement_groups)
    measurements = []
    for content_items in merged_content_items.values():
        measurement = _process_measurement(content_items)
        if measurement is not None:
            measurements.append(measurement)

    return measurements


def extract_referenced_images(
    report_content_sequence: Union[Sequence[Dataset], Dataset]
) -> List[ReferencedImage]:
    """Extract images referenced in the Image Library of a report.

    Parameters
    ----------
    report_content_sequence: Union[Sequence[pydicom.dataset.Dataset], pydicom.dataset.Dataset]
        Items of the Content Sequence of the document root

    Returns
    -------
    List[srmeasurements.sr.ReferencedImage]
        Referenced images. Empty if the document has no Image Library.

    """  # noqa: E501
    report_items = as_sequence(report_content_sequence)
    image_library = find_first(
        report_items,
        lambda i: has_concept_name(i, codes.ImageLibrary)
    )
    if image_library is None:
        logger.debug('no Image Library found')
        return []

    image_library_group = find_first(
        get_sequence(image_library, 'ContentSequence'),
        lambda i: has_concept_name(i, codes.ImageLibraryGroup)
    )
    if image_library_group is None:
        logger.debug('no Image Library Group found')
        return []

    referenced_images = []
    for item in get_sequence(image_library_group, 'ContentSequence'):
        for reference in get_sequence(item, 'ReferencedSOPSequence'):
            sop_class_uid = reference.get('ReferencedSOPClassUID', None)
            if not sop_class_uid:
                continue
            referenced_images.append(
                ReferencedImage(
                    referenced_sop_class_uid=sop_class_uid,
                    referenced_sop_instance_uid=reference.get(
                        'ReferencedSOPInstanceUID',
                        None
                    )
                )
            )

    return referenced_images
