"""Package for reading measurements from Structured Report (SR) instances."""
from srmeasurements.sr.bulkdata import BulkDataRetriever, resolve_bulk_data
from srmeasurements.sr.content import (
    Coordinate,
    Measurement,
    MeasurementLabel,
    ReferencedImage,
)
from srmeasurements.sr.enum import GraphicTypeValues, ValueTypeValues
from srmeasurements.sr.extraction import (
    extract_measurements,
    extract_referenced_images,
    format_measured_value,
)
from srmeasurements.sr.sop import (
    SR_3D_SOP_CLASS_UIDS,
    SR_SOP_CLASS_UIDS,
    SRDocument,
    srread,
)
from srmeasurements.sr import utils

__all__ = [
    'BulkDataRetriever',
    'Coordinate',
    'GraphicTypeValues',
    'Measurement',
    'MeasurementLabel',
    'ReferencedImage',
    'SRDocument',
    'SR_3D_SOP_CLASS_UIDS',
    'SR_SOP_CLASS_UIDS',
    'ValueTypeValues',
    'extract_measurements',
    'extract_referenced_images',
    'format_measured_value',
    'resolve_bulk_data',
    'srread',
    'utils',
]
