"""Display sets of Structured Report (SR) series."""
import logging
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from pydicom.dataset import Dataset

from srmeasurements.binding import BeforeAddMeasurementHook, MeasurementBinder
from srmeasurements.errors import InstanceMismatchError
from srmeasurements.rehydration import (
    DEFAULT_TOOL_ADAPTERS,
    ToolAdapterRegistry,
    is_rehydratable,
)
from srmeasurements.services import (
    AnnotationStore,
    DataSource,
    DisplaySetService,
    MeasurementService,
    Subscription,
    get_uids_from_image_id,
)
from srmeasurements.sr.content import Measurement, ReferencedImage
from srmeasurements.sr.extraction import (
    extract_measurements,
    extract_referenced_images,
)
from srmeasurements.sr.sop import (
    SR_3D_SOP_CLASS_UIDS,
    SR_SOP_CLASS_UIDS,
    SRDocument,
)
from srmeasurements.uid import UID

logger = logging.getLogger(__name__)


SOP_CLASS_HANDLER_NAME = 'dicom-sr'
SOP_CLASS_HANDLER_NAME_3D = 'dicom-sr-3d'
_SOP_CLASS_HANDLER_MODULE = 'srmeasurements.sopClassHandlerModule'
SOP_CLASS_HANDLER_ID = f'{_SOP_CLASS_HANDLER_MODULE}.{SOP_CLASS_HANDLER_NAME}'
SOP_CLASS_HANDLER_ID_3D = (
    f'{_SOP_CLASS_HANDLER_MODULE}.{SOP_CLASS_HANDLER_NAME_3D}'
)

CORNERSTONE_3D_TOOLS_SOURCE_NAME = 'Cornerstone3DTools'
CORNERSTONE_3D_TOOLS_SOURCE_VERSION = '0.1'


SRInstance = Union[SRDocument, Dataset, Mapping[str, Any]]


def _as_document(instance: SRInstance) -> SRDocument:
    if isinstance(instance, SRDocument):
        return instance
    if isinstance(instance, Dataset):
        return SRDocument.from_dataset(instance)
    if isinstance(instance, Mapping):
        return SRDocument.from_json(instance)
    raise TypeError(
        'SR instance must be a SRDocument, a pydicom.dataset.Dataset or a '
        'mapping in DICOM JSON format.'
    )


def _get_sort_key(instance: Any) -> tuple:
    instance_number = instance.get('InstanceNumber', None)
    return (
        int(instance_number) if instance_number is not None else 0,
        str(instance.get('ContentDate', None) or ''),
        str(instance.get('ContentTime', None) or ''),
        str(instance.get('SOPInstanceUID', None) or ''),
    )


def sort_study_instances(instances: List[Any]) -> List[Any]:
    """Sort instances of a series in place.

    Instances are sorted by Instance Number and then by Content Date,
    Content Time and SOP Instance UID, such that the most recent instance
    comes last.

    Parameters
    ----------
    instances: List[Any]
        Instances with a ``get()`` method, e.g.
        :class:`pydicom.dataset.Dataset` or :class:`srmeasurements.sr.SRDocument`

    Returns
    -------
    List[Any]
        The sorted instances

    """  # noqa: E501
    instances.sort(key=_get_sort_key)
    return instances


def _check_study(
    instances: Sequence[SRDocument],
    study_instance_uid: Optional[str] = None
) -> None:
    if len(instances) == 0:
        raise InstanceMismatchError('At least one instance must be provided.')
    if study_instance_uid is None:
        study_instance_uid = instances[0].StudyInstanceUID
    for instance in instances:
        if instance.StudyInstanceUID != study_instance_uid:
            raise InstanceMismatchError(
                f'Instance "{instance.SOPInstanceUID}" belongs to study '
                f'"{instance.StudyInstanceUID}" rather than study '
                f'"{study_instance_uid}".'
            )


class SRDisplaySet:

    """Display set of the SR instances of one series.

    The most recent instance of the series is the active instance, whose
    measurements are displayed. Measurements and referenced images are only
    available after the display set has been loaded.

    """

    def __init__(
        self,
        instances: Sequence[SRInstance],
        data_source: DataSource,
        binder: Optional[MeasurementBinder] = None,
        display_set_service: Optional[DisplaySetService] = None,
        measurement_service: Optional[MeasurementService] = None,
        source_name: str = CORNERSTONE_3D_TOOLS_SOURCE_NAME,
        source_version: str = CORNERSTONE_3D_TOOLS_SOURCE_VERSION,
        adapters: ToolAdapterRegistry = DEFAULT_TOOL_ADAPTERS
    ) -> None:
        """
        Parameters
        ----------
        instances: Sequence[Union[srmeasurements.sr.SRDocument, pydicom.dataset.Dataset, Mapping[str, Any]]]
            SR instances of one series
        data_source: srmeasurements.services.DataSource
            Source of bulk data
        binder: Union[srmeasurements.binding.MeasurementBinder, None], optional
            Binder of measurements to image display sets
        display_set_service: Union[srmeasurements.services.DisplaySetService, None], optional
            Registry of display sets, to whose images measurements get bound
        measurement_service: Union[srmeasurements.services.MeasurementService, None], optional
            Registry of tool mappings
        source_name: str, optional
            Name of the source of tool mappings
        source_version: str, optional
            Version of the source of tool mappings
        adapters: srmeasurements.rehydration.ToolAdapterRegistry, optional
            Adapters between measurements and tools

        Raises
        ------
        srmeasurements.errors.InstanceMismatchError
            When no instances are provided or instances belong to different
            studies

        """  # noqa: E501
        documents = [_as_document(instance) for instance in instances]
        _check_study(documents)
        self.instances = sort_study_instances(documents)
        self.display_set_instance_uid = UID()
        self.modality = 'SR'
        self.is_derived_display_set = True
        self.measurements: List[Measurement] = []
        self.referenced_images: List[ReferencedImage] = []
        self.is_loaded = False
        self.is_hydrated = False
        self.is_rehydratable = False
        self._data_source = data_source
        self._binder = binder
        self._display_set_service = display_set_service
        self._measurement_service = measurement_service
        self._source_name = source_name
        self._source_version = source_version
        self._adapters = adapters
        self._subscription: Optional[Subscription] = None
        self._removal_subscription: Optional[Subscription] = None
        self._select_active_instance()

    def __repr__(self) -> str:
        return (
            'SRDisplaySet('
            f'display_set_instance_uid={self.display_set_instance_uid!r}, '
            f'instances={len(self.instances)}, '
            f'is_loaded={self.is_loaded!r})'
        )

    def _select_active_instance(self) -> None:
        instance = self.instances[-1]
        self.instance = instance
        self.study_instance_uid = instance.StudyInstanceUID
        self.series_instance_uid = instance.SeriesInstanceUID
        self.sop_instance_uid = instance.SOPInstanceUID
        self.sop_class_uids = sorted({i.SOPClassUID for i in self.instances})
        self.series_description = instance.get('SeriesDescription', None)
        self.series_number = instance.get('SeriesNumber', None)
        self.series_date = instance.get('SeriesDate', None)
        self.series_time = instance.get('SeriesTime', None)
        if instance.is_3d:
            self.sop_class_handler_id = SOP_CLASS_HANDLER_ID_3D
        else:
            self.sop_class_handler_id = SOP_CLASS_HANDLER_ID
        self.label = (
            self.series_description or
            f'Series {self.series_number} - SR'
        )

    @property
    def is_3d(self) -> bool:
        """bool: whether the active instance is a Comprehensive 3D SR"""
        return self.instance.is_3d

    @property
    def is_imaging_measurement_report(self) -> bool:
        """bool: whether the active instance is an Imaging Measurement
        Report"""
        return self.instance.is_imaging_measurement_report

    @property
    def is_subscribed(self) -> bool:
        """bool: whether measurements get bound to display sets that are
        added later on"""
        return (
            self._subscription is not None and
            self._subscription.is_active
        )

    def add_instances(
        self,
        instances: Iterable[SRInstance]
    ) -> 'SRDisplaySet':
        """Add instances of the same series.

        The active instance is selected again and the display set needs to be
        loaded again.

        Parameters
        ----------
        instances: Iterable[Union[srmeasurements.sr.SRDocument, pydicom.dataset.Dataset, Mapping[str, Any]]]
            Additional SR instances

        Returns
        -------
        srmeasurements.displayset.SRDisplaySet
            The display set itself

        Raises
        ------
        srmeasurements.errors.InstanceMismatchError
            When instances belong to a different study

        """  # noqa: E501
        documents = [_as_document(instance) for instance in instances]
        if len(documents) == 0:
            return self
        _check_study(documents, self.study_instance_uid)
        self.instances.extend(documents)
        sort_study_instances(self.instances)
        self._select_active_instance()
        self.is_loaded = False
        logger.debug(
            f'added {len(documents)} instances to display set '
            f'"{self.display_set_instance_uid}"'
        )
        return self

    def _get_tool_mappings(self) -> List[Any]:
        if self._measurement_service is None:
            return []
        return self._measurement_service.get_source_mappings(
            self._source_name,
            self._source_version
        )

    async def load(self) -> None:
        """Load measurements and referenced images of the active instance.

        Bulk data of the active instance is retrieved unless it has been
        retrieved before. Measurements are subsequently bound to the active
        display sets and to display sets that are added later on.

        Raises
        ------
        srmeasurements.errors.BulkDataRetrievalError
            When bulk data could not be retrieved or decoded. The display set
            remains unloaded without measurements and loading can be retried.

        """
        instance = self.instance
        try:
            await instance.resolve_bulk_data(self._data_source)
        except Exception:
            self.close()
            self.is_loaded = False
            self.measurements = []
            self.referenced_images = []
            raise

        if instance.is_imaging_measurement_report:
            content_sequence = instance.content_sequence
            self.measurements = extract_measurements(content_sequence)
            self.referenced_images = extract_referenced_images(
                content_sequence
            )
        else:
            self.measurements = []
            self.referenced_images = []

        self.is_rehydratable = is_rehydratable(
            self,
            self._get_tool_mappings(),
            self._adapters
        )
        self.is_hydrated = False
        self.is_loaded = True
        logger.info(
            f'loaded {len(self.measurements)} measurements of SR display set '
            f'"{self.display_set_instance_uid}"'
        )

        if self._binder is not None and self._display_set_service is not None:
            self.close()
            self._subscription = self._binder.attach(
                self,
                self._display_set_service
            )
            self._removal_subscription = self._display_set_service.subscribe(
                DisplaySetService.EVENTS.DISPLAY_SETS_REMOVED,
                self._on_display_sets_removed
            )

    def _on_display_sets_removed(self, data: Dict[str, Any]) -> None:
        if any(d is self for d in data.get('display_sets_removed', [])):
            logger.debug(
                f'SR display set "{self.display_set_instance_uid}" was '
                'removed'
            )
            self.close()

    def close(self) -> None:
        """Stop binding measurements to display sets that are added later
        on.

        Called automatically once the display set is removed from the
        display set service.

        """
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._removal_subscription is not None:
            self._removal_subscription.unsubscribe()
            self._removal_subscription = None


def create_display_set(
    instances: Sequence[SRInstance],
    data_source: DataSource,
    binder: Optional[MeasurementBinder] = None,
    display_set_service: Optional[DisplaySetService] = None,
    measurement_service: Optional[MeasurementService] = None,
    source_name: str = CORNERSTONE_3D_TOOLS_SOURCE_NAME,
    source_version: str = CORNERSTONE_3D_TOOLS_SOURCE_VERSION,
    adapters: ToolAdapterRegistry = DEFAULT_TOOL_ADAPTERS
) -> SRDisplaySet:
    """Create the display set of the SR instances of one series.

    Parameters
    ----------
    instances: Sequence[Union[srmeasurements.sr.SRDocument, pydicom.dataset.Dataset, Mapping[str, Any]]]
        SR instances of one series
    data_source: srmeasurements.services.DataSource
        Source of bulk data
    binder: Union[srmeasurements.binding.MeasurementBinder, None], optional
        Binder of measurements to image display sets
    display_set_service: Union[srmeasurements.services.DisplaySetService, None], optional
        Registry of display sets
    measurement_service: Union[srmeasurements.services.MeasurementService, None], optional
        Registry of tool mappings
    source_name: str, optional
        Name of the source of tool mappings
    source_version: str, optional
        Version of the source of tool mappings
    adapters: srmeasurements.rehydration.ToolAdapterRegistry, optional
        Adapters between measurements and tools

    Returns
    -------
    srmeasurements.displayset.SRDisplaySet
        Display set, which still needs to be loaded

    Raises
    ------
    srmeasurements.errors.InstanceMismatchError
        When no instances are provided or instances belong to different
        studies

    """  # noqa: E501
    display_set = SRDisplaySet(
        instances,
        data_source=data_source,
        binder=binder,
        display_set_service=display_set_service,
        measurement_service=measurement_service,
        source_name=source_name,
        source_version=source_version,
        adapters=adapters,
    )
    logger.info(
        f'created SR display set "{display_set.display_set_instance_uid}" '
        f'for series "{display_set.series_instance_uid}"'
    )
    return display_set


class SRSopClassHandler:

    """Creates display sets of series of SR instances."""

    def __init__(
        self,
        name: str,
        sop_class_uids: Sequence[str],
        data_source: DataSource,
        display_set_service: Optional[DisplaySetService] = None,
        measurement_service: Optional[MeasurementService] = None,
        annotation_store: Optional[AnnotationStore] = None,
        on_before_add_measurement: Optional[BeforeAddMeasurementHook] = None,
        get_uids_from_image_id: Callable[[str], Dict[str, Any]] = (
            get_uids_from_image_id
        ),
        source_name: str = CORNERSTONE_3D_TOOLS_SOURCE_NAME,
        source_version: str = CORNERSTONE_3D_TOOLS_SOURCE_VERSION,
        adapters: ToolAdapterRegistry = DEFAULT_TOOL_ADAPTERS
    ) -> None:
        """
        Parameters
        ----------
        name: str
            Name of the handler
        sop_class_uids: Sequence[str]
            SOP Class UIDs of instances handled by the handler
        data_source: srmeasurements.services.DataSource
            Source of bulk data and image IDs
        display_set_service: Union[srmeasurements.services.DisplaySetService, None], optional
            Registry of display sets
        measurement_service: Union[srmeasurements.services.MeasurementService, None], optional
            Registry of tool mappings
        annotation_store: Union[srmeasurements.services.AnnotationStore, None], optional
            Sink of annotations of bound measurements
        on_before_add_measurement: Union[Callable[[srmeasurements.sr.Measurement, str, str], srmeasurements.sr.Measurement], None], optional
            Hook that may rewrite a measurement before it is bound
        get_uids_from_image_id: Callable[[str], Dict[str, Any]], optional
            Function that determines the SOP Instance UID and frame number of
            the image identified by an image ID
        source_name: str, optional
            Name of the source of tool mappings
        source_version: str, optional
            Version of the source of tool mappings
        adapters: srmeasurements.rehydration.ToolAdapterRegistry, optional
            Adapters between measurements and tools

        """  # noqa: E501
        self.name = name
        self.sop_class_uids = tuple(sop_class_uids)
        if annotation_store is None:
            annotation_store = AnnotationStore()
        self.annotation_store = annotation_store
        self._data_source = data_source
        self._display_set_service = display_set_service
        self._measurement_service = measurement_service
        self._source_name = source_name
        self._source_version = source_version
        self._adapters = adapters
        self._binder = MeasurementBinder(
            data_source,
            annotation_store,
            get_uids_from_image_id=get_uids_from_image_id,
            on_before_add_measurement=on_before_add_measurement,
        )

    def __repr__(self) -> str:
        return f'SRSopClassHandler({self.name!r})'

    def get_display_sets_from_series(
        self,
        instances: Sequence[SRInstance]
    ) -> List[SRDisplaySet]:
        """Get the display sets of a series.

        Parameters
        ----------
        instances: Sequence[Union[srmeasurements.sr.SRDocument, pydicom.dataset.Dataset, Mapping[str, Any]]]
            Instances of one series

        Returns
        -------
        List[srmeasurements.displayset.SRDisplaySet]
            Display sets (empty if no instance is handled by the handler)

        Raises
        ------
        srmeasurements.errors.InstanceMismatchError
            When no instances are provided or instances belong to different
            studies

        """  # noqa: E501
        if len(instances) == 0:
            raise InstanceMismatchError(
                'At least one instance must be provided.'
            )
        documents = [_as_document(instance) for instance in instances]
        handled = [
            document for document in documents
            if document.get('SOPClassUID', None) in self.sop_class_uids
        ]
        if len(handled) == 0:
            logger.debug(
                f'series contains no instances handled by "{self.name}"'
            )
            return []
        display_set = create_display_set(
            handled,
            data_source=self._data_source,
            binder=self._binder,
            display_set_service=self._display_set_service,
            measurement_service=self._measurement_service,
            source_name=self._source_name,
            source_version=self._source_version,
            adapters=self._adapters,
        )
        return [display_set]


def get_sop_class_handlers(
    data_source: DataSource,
    **kwargs: Any
) -> List[SRSopClassHandler]:
    """Get the handlers of 2D and 3D SR instances.

    Parameters
    ----------
    data_source: srmeasurements.services.DataSource
        Source of bulk data and image IDs
    **kwargs: Any, optional
        Additional keyword arguments passed to
        :class:`srmeasurements.displayset.SRSopClassHandler`

    Returns
    -------
    List[srmeasurements.displayset.SRSopClassHandler]
        Handlers of 2D and 3D SR instances, which share the annotation store

    """
    if kwargs.get('annotation_store') is None:
        kwargs['annotation_store'] = AnnotationStore()
    return [
        SRSopClassHandler(
            SOP_CLASS_HANDLER_NAME,
            SR_SOP_CLASS_UIDS,
            data_source,
            **kwargs
        ),
        SRSopClassHandler(
            SOP_CLASS_HANDLER_NAME_3D,
            SR_3D_SOP_CLASS_UIDS,
            data_source,
            **kwargs
        ),
    ]
