from srmeasurements import codes
from srmeasurements import sr
from srmeasurements.annotation import (
    Annotation,
    ToolNames,
    build_annotation,
    get_renderable_data,
)
from srmeasurements.binding import MeasurementBinder
from srmeasurements.displayset import (
    CORNERSTONE_3D_TOOLS_SOURCE_NAME,
    CORNERSTONE_3D_TOOLS_SOURCE_VERSION,
    SOP_CLASS_HANDLER_ID,
    SOP_CLASS_HANDLER_ID_3D,
    SOP_CLASS_HANDLER_NAME,
    SOP_CLASS_HANDLER_NAME_3D,
    SRDisplaySet,
    SRSopClassHandler,
    create_display_set,
    get_sop_class_handlers,
    sort_study_instances,
)
from srmeasurements.errors import (
    AlreadyBoundError,
    BulkDataRetrievalError,
    InstanceMismatchError,
)
from srmeasurements.rehydration import (
    DEFAULT_TOOL_ADAPTERS,
    ToolAdapter,
    ToolAdapterRegistry,
    is_rehydratable,
)
from srmeasurements.services import (
    AnnotationStore,
    DisplaySetService,
    ImageDisplaySet,
    LocalDataSource,
    MeasurementService,
    Subscription,
    ToolMapping,
    get_uids_from_image_id,
)
from srmeasurements.uid import UID
from srmeasurements.version import __version__

__all__ = [
    'AlreadyBoundError',
    'Annotation',
    'AnnotationStore',
    'BulkDataRetrievalError',
    'CORNERSTONE_3D_TOOLS_SOURCE_NAME',
    'CORNERSTONE_3D_TOOLS_SOURCE_VERSION',
    'DEFAULT_TOOL_ADAPTERS',
    'DisplaySetService',
    'ImageDisplaySet',
    'InstanceMismatchError',
    'LocalDataSource',
    'MeasurementBinder',
    'MeasurementService',
    'SOP_CLASS_HANDLER_ID',
    'SOP_CLASS_HANDLER_ID_3D',
    'SOP_CLASS_HANDLER_NAME',
    'SOP_CLASS_HANDLER_NAME_3D',
    'SRDisplaySet',
    'SRSopClassHandler',
    'Subscription',
    'ToolAdapter',
    'ToolAdapterRegistry',
    'ToolMapping',
    'ToolNames',
    'UID',
    '__version__',
    'build_annotation',
    'codes',
    'create_display_set',
    'get_renderable_data',
    'get_sop_class_handlers',
    'get_uids_from_image_id',
    'is_rehydratable',
    'sort_study_instances',
    'sr',
]
