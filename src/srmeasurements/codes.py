"""Coded concepts used to navigate TID 1500 Measurement Report documents."""
from pydicom.sr.coding import Code
from pydicom.sr.codedict import codes


ImagingMeasurementReport = codes.DCM.ImagingMeasurementReport
ImageLibrary = codes.DCM.ImageLibrary
ImageLibraryGroup = codes.DCM.ImageLibraryGroup
ImagingMeasurements = codes.DCM.ImagingMeasurements
MeasurementGroup = codes.DCM.MeasurementGroup
TrackingIdentifier = codes.DCM.TrackingIdentifier
TrackingUniqueIdentifier = codes.DCM.TrackingUniqueIdentifier
Finding = codes.DCM.Finding
Comment = codes.DCM.Comment
FindingSiteSCT = codes.SCT.FindingSite

# Retired SNOMED-RT code, still written by Cornerstone tools
FindingSite = Code('G-C0E3', 'SRT', 'Finding Site')

# Position of the text box of an annotation, which is not a measurement
TextAnnotationPosition = codes.DCM.Center

CORNERSTONE_FREE_TEXT_VALUE = 'CORNERSTONEFREETEXT'
CORNERSTONE_CODING_SCHEME_DESIGNATORS = ('CORNERSTONEJS', 'CST4')
