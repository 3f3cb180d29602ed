from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from pydicom.dataset import Dataset
from pydicom.sr.coding import Code
from pydicom.uid import (
    ComprehensiveSRStorage,
    CTImageStorage,
    generate_uid,
)

from srmeasurements import codes


MILLIMETER = Code('mm', 'UCUM', 'millimeter')
CENTIMETER = Code('cm', 'UCUM', 'centimeter')
LENGTH = Code('410668003', 'SCT', 'Length')
LONG_AXIS = Code('G-A185', 'SRT', 'Long Axis')
AREA = Code('42798000', 'SCT', 'Area')
LIVER = Code('10200004', 'SCT', 'Liver')
IMAGE_REGION = Code('111030', 'DCM', 'Image Region')

GRAPHIC_DATA_TAG = '00700022'


def create_code(code: Code) -> Dataset:
    """Create an item of a code sequence."""
    item = Dataset()
    item.CodeValue = code.value
    item.CodingSchemeDesignator = code.scheme_designator
    item.CodeMeaning = code.meaning
    return item


def create_content_item(
    value_type: str,
    concept: Optional[Code] = None,
    relationship_type: str = 'CONTAINS'
) -> Dataset:
    item = Dataset()
    item.RelationshipType = relationship_type
    item.ValueType = value_type
    if concept is not None:
        item.ConceptNameCodeSequence = [create_code(concept)]
    return item


def create_container(
    concept: Code,
    items: Sequence[Dataset],
    relationship_type: str = 'CONTAINS'
) -> Dataset:
    item = create_content_item('CONTAINER', concept, relationship_type)
    item.ContinuityOfContent = 'SEPARATE'
    item.ContentSequence = list(items)
    return item


def create_num_item(
    concept: Code,
    value: float,
    unit: Optional[Code] = None,
    items: Optional[Sequence[Dataset]] = None
) -> Dataset:
    item = create_content_item('NUM', concept)
    measured_value = Dataset()
    measured_value.NumericValue = value
    if unit is not None:
        measured_value.MeasurementUnitsCodeSequence = [create_code(unit)]
    item.MeasuredValueSequence = [measured_value]
    if items is not None:
        item.ContentSequence = list(items)
    return item


def create_image_item(
    sop_instance_uid: str,
    sop_class_uid: str = CTImageStorage,
    frame_number: Optional[int] = None,
    relationship_type: str = 'SELECTED FROM'
) -> Dataset:
    item = create_content_item('IMAGE', None, relationship_type)
    reference = Dataset()
    reference.ReferencedSOPClassUID = sop_class_uid
    reference.ReferencedSOPInstanceUID = sop_instance_uid
    if frame_number is not None:
        reference.ReferencedFrameNumber = frame_number
    item.ReferencedSOPSequence = [reference]
    return item


def create_scoord_item(
    graphic_type: str,
    graphic_data: Sequence[float],
    sop_instance_uid: str,
    frame_number: Optional[int] = None,
    concept: Code = IMAGE_REGION,
    relationship_type: str = 'CONTAINS'
) -> Dataset:
    item = create_content_item('SCOORD', concept, relationship_type)
    item.GraphicType = graphic_type
    item.GraphicData = [float(v) for v in graphic_data]
    item.ContentSequence = [
        create_image_item(sop_instance_uid, frame_number=frame_number)
    ]
    return item


def create_scoord3d_item(
    graphic_type: str,
    graphic_data: Sequence[float],
    frame_of_reference_uid: str,
    concept: Code = IMAGE_REGION,
    relationship_type: str = 'CONTAINS'
) -> Dataset:
    item = create_content_item('SCOORD3D', concept, relationship_type)
    item.GraphicType = graphic_type
    item.GraphicData = [float(v) for v in graphic_data]
    item.ReferencedFrameOfReferenceUID = frame_of_reference_uid
    return item


def create_text_position_item(x: float, y: float, sop_instance_uid: str):
    return create_scoord_item(
        'POINT',
        [x, y],
        sop_instance_uid,
        concept=codes.TextAnnotationPosition,
        relationship_type='HAS PROPERTIES'
    )


def create_uidref_item(
    uid: str,
    concept: Code = codes.TrackingUniqueIdentifier
) -> Dataset:
    item = create_content_item('UIDREF', concept, 'HAS OBS CONTEXT')
    item.UID = uid
    return item


def create_text_item(
    concept: Code,
    text: str,
    relationship_type: str = 'HAS OBS CONTEXT'
) -> Dataset:
    item = create_content_item('TEXT', concept, relationship_type)
    item.TextValue = text
    return item


def create_code_item(
    concept: Code,
    value: Code,
    relationship_type: str = 'HAS CONCEPT MOD'
) -> Dataset:
    item = create_content_item('CODE', concept, relationship_type)
    item.ConceptCodeSequence = [create_code(value)]
    return item


def create_measurement_group(
    items: Sequence[Dataset],
    tracking_uid: Optional[str] = None,
    tracking_identifier: Optional[str] = None
) -> Dataset:
    """Create a Measurement Group (TID 1410 or TID 1501)."""
    content: List[Dataset] = []
    if tracking_identifier is not None:
        content.append(
            create_text_item(codes.TrackingIdentifier, tracking_identifier)
        )
    if tracking_uid is not None:
        content.append(create_uidref_item(tracking_uid))
    content.extend(items)
    return create_container(codes.MeasurementGroup, content)


def create_report_content(
    measurement_groups: Sequence[Dataset],
    referenced_images: Sequence[Dataset] = ()
) -> List[Dataset]:
    """Create the root Content Sequence of a Measurement Report."""
    image_library = create_container(
        codes.ImageLibrary,
        [create_container(codes.ImageLibraryGroup, referenced_images)]
    )
    imaging_measurements = create_container(
        codes.ImagingMeasurements,
        measurement_groups
    )
    return [image_library, imaging_measurements]


def create_report(
    content: Sequence[Dataset],
    study_instance_uid: Optional[str] = None,
    series_instance_uid: Optional[str] = None,
    sop_instance_uid: Optional[str] = None,
    sop_class_uid: str = ComprehensiveSRStorage,
    instance_number: int = 1,
    series_description: Optional[str] = None,
    title: Code = codes.ImagingMeasurementReport,
    content_date: str = '20240101',
    content_time: str = '120000'
) -> Dataset:
    """Create a Measurement Report document."""
    report = Dataset()
    report.SOPClassUID = sop_class_uid
    report.SOPInstanceUID = sop_instance_uid or generate_uid()
    report.StudyInstanceUID = study_instance_uid or generate_uid()
    report.SeriesInstanceUID = series_instance_uid or generate_uid()
    report.Modality = 'SR'
    report.SeriesNumber = 10
    report.InstanceNumber = instance_number
    report.ContentDate = content_date
    report.ContentTime = content_time
    if series_description is not None:
        report.SeriesDescription = series_description
    report.ValueType = 'CONTAINER'
    report.ContinuityOfContent = 'SEPARATE'
    report.ConceptNameCodeSequence = [create_code(title)]
    report.ContentSequence = list(content)
    return report


def encode_float_payload(values: Sequence[float]) -> bytes:
    return np.array(values, dtype='<f4').tobytes()


def replace_graphic_data(node: Any, bulk_data_uris: List[str]) -> None:
    """Replace Graphic Data in a DICOM JSON subtree by bulk data references.

    URIs are consumed in depth-first order of the Graphic Data attributes.

    """
    if isinstance(node, list):
        for item in node:
            replace_graphic_data(item, bulk_data_uris)
    elif isinstance(node, dict):
        for tag, attribute in node.items():
            if not isinstance(attribute, dict):
                continue
            if tag == GRAPHIC_DATA_TAG and len(bulk_data_uris) > 0:
                attribute.pop('Value', None)
                attribute['BulkDataURI'] = bulk_data_uris.pop(0)
            else:
                value = attribute.get('Value', [])
                replace_graphic_data(value, bulk_data_uris)


def create_json_report(
    report: Dataset,
    bulk_data_uris: Sequence[str] = ()
) -> Dict[str, Any]:
    """Encode a report in DICOM JSON format, optionally storing Graphic Data
    as bulk data."""
    metadata = report.to_json_dict()
    replace_graphic_data(metadata, list(bulk_data_uris))
    return metadata
