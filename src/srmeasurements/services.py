"""Collaborators of the SR display set pipeline.

The viewer that hosts the pipeline provides the display set registry, the
tool mappings, the annotation store and the data source. This module defines
the interfaces that are relied upon together with simple in-memory
implementations of them.

"""
import logging
import re
from collections import OrderedDict
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)
from urllib.parse import parse_qs, urlsplit

from srmeasurements.uid import UID

logger = logging.getLogger(__name__)


class Subscription:

    """Handle of a subscription to events of a service."""

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe: Optional[Callable[[], None]] = unsubscribe

    @property
    def is_active(self) -> bool:
        """bool: whether the subscription has not been cancelled"""
        return self._unsubscribe is not None

    def unsubscribe(self) -> None:
        """Cancel the subscription. Subsequent calls have no effect."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class ImageDisplaySet:

    """Display set of images, e.g. all frames of a CT series."""

    def __init__(
        self,
        image_ids: Sequence[str],
        frame_of_reference_uid: Optional[str] = None,
        study_instance_uid: Optional[str] = None,
        series_instance_uid: Optional[str] = None,
        display_set_instance_uid: Optional[str] = None,
        unsupported: bool = False
    ) -> None:
        """
        Parameters
        ----------
        image_ids: Sequence[str]
            Identifiers of the images (one per frame)
        frame_of_reference_uid: Union[str, None], optional
            Frame of reference of the images
        study_instance_uid: Union[str, None], optional
            Study Instance UID
        series_instance_uid: Union[str, None], optional
            Series Instance UID
        display_set_instance_uid: Union[str, None], optional
            Identifier of the display set (generated if not provided)
        unsupported: bool, optional
            Whether the display set cannot be displayed

        """
        self.image_ids = list(image_ids)
        self.frame_of_reference_uid = frame_of_reference_uid
        self.study_instance_uid = study_instance_uid
        self.series_instance_uid = series_instance_uid
        if display_set_instance_uid is None:
            display_set_instance_uid = UID()
        self.display_set_instance_uid = display_set_instance_uid
        self.unsupported = unsupported

    def __repr__(self) -> str:
        return (
            'ImageDisplaySet('
            f'display_set_instance_uid={self.display_set_instance_uid!r}, '
            f'images={len(self.image_ids)})'
        )


class DataSource(Protocol):

    """Source of bulk data and image identifiers."""

    async def retrieve_bulk_data(
        self,
        bulk_data_uri: str,
        study_instance_uid: str,
        series_instance_uid: str,
        sop_instance_uid: str
    ) -> bytes:
        ...

    def get_image_ids_for_display_set(self, display_set: Any) -> List[str]:
        ...


class LocalDataSource:

    """Data source that serves bulk data from memory."""

    def __init__(
        self,
        bulk_data: Optional[Mapping[str, bytes]] = None
    ) -> None:
        """
        Parameters
        ----------
        bulk_data: Union[Mapping[str, bytes], None], optional
            Bulk data payloads by bulk data URI

        """
        self._bulk_data: Dict[str, bytes] = dict(bulk_data or {})

    def add_bulk_data(self, bulk_data_uri: str, payload: bytes) -> None:
        self._bulk_data[bulk_data_uri] = payload

    async def retrieve_bulk_data(
        self,
        bulk_data_uri: str,
        study_instance_uid: str,
        series_instance_uid: str,
        sop_instance_uid: str
    ) -> bytes:
        try:
            return self._bulk_data[bulk_data_uri]
        except KeyError:
            raise KeyError(
                f'No bulk data found for URI "{bulk_data_uri}" of SOP '
                f'instance "{sop_instance_uid}".'
            )

    def get_image_ids_for_display_set(self, display_set: Any) -> List[str]:
        return list(getattr(display_set, 'image_ids', []))


class DisplaySetService:

    """Registry of the display sets that are available to the viewer."""

    class EVENTS:
        DISPLAY_SETS_ADDED = 'event::displaySetService:displaySetsAdded'
        DISPLAY_SETS_REMOVED = 'event::displaySetService:displaySetsRemoved'

    def __init__(self) -> None:
        self._display_sets: Dict[str, Any] = OrderedDict()
        self._listeners: Dict[str, Dict[int, Callable]] = {
            self.EVENTS.DISPLAY_SETS_ADDED: OrderedDict(),
            self.EVENTS.DISPLAY_SETS_REMOVED: OrderedDict(),
        }
        self._next_listener_id = 0

    @property
    def active_display_sets(self) -> List[Any]:
        """List[Any]: display sets that are currently available"""
        return list(self._display_sets.values())

    def get_display_set_by_uid(self, display_set_instance_uid: str) -> Any:
        return self._display_sets.get(display_set_instance_uid)

    def listener_count(self, event: str) -> int:
        """Get the number of callbacks that are subscribed to an event."""
        return len(self._listeners[event])

    def subscribe(
        self,
        event: str,
        callback: Callable[[Dict[str, Any]], None]
    ) -> Subscription:
        """Subscribe to an event.

        Parameters
        ----------
        event: str
            Name of the event, e.g.
            ``DisplaySetService.EVENTS.DISPLAY_SETS_ADDED``
        callback: Callable[[Dict[str, Any]], None]
            Function that gets called with the event data

        Returns
        -------
        srmeasurements.services.Subscription
            Subscription that can be cancelled

        """
        if event not in self._listeners:
            raise ValueError(f'Unknown event "{event}".')
        listener_id = self._next_listener_id
        self._next_listener_id += 1
        self._listeners[event][listener_id] = callback

        def unsubscribe() -> None:
            self._listeners[event].pop(listener_id, None)

        return Subscription(unsubscribe)

    def _broadcast(self, event: str, data: Dict[str, Any]) -> None:
        for callback in list(self._listeners[event].values()):
            callback(data)

    def add_display_sets(self, display_sets: Iterable[Any]) -> List[Any]:
        """Add display sets and notify subscribers.

        Parameters
        ----------
        display_sets: Iterable[Any]
            Display sets with attribute ``display_set_instance_uid``

        Returns
        -------
        List[Any]
            Display sets that were added

        """
        added = []
        for display_set in display_sets:
            uid = display_set.display_set_instance_uid
            if uid in self._display_sets:
                continue
            self._display_sets[uid] = display_set
            added.append(display_set)
        if len(added) > 0:
            logger.debug(f'added {len(added)} display sets')
            self._broadcast(
                self.EVENTS.DISPLAY_SETS_ADDED,
                {'display_sets_added': added}
            )
        return added

    def remove_display_sets(self, display_set_instance_uids: Iterable[str]):
        removed = []
        for uid in display_set_instance_uids:
            display_set = self._display_sets.pop(uid, None)
            if display_set is not None:
                removed.append(display_set)
        if len(removed) > 0:
            self._broadcast(
                self.EVENTS.DISPLAY_SETS_REMOVED,
                {'display_sets_removed': removed}
            )
        return removed


class ToolMapping:

    """Mapping of an annotation tool to measurements of a source."""

    def __init__(
        self,
        annotation_type: str,
        source_name: str,
        source_version: str
    ) -> None:
        self.annotation_type = annotation_type
        self.source_name = source_name
        self.source_version = source_version

    def __repr__(self) -> str:
        return f'ToolMapping({self.annotation_type!r})'


class MeasurementService:

    """Registry of annotation tool mappings per measurement source."""

    def __init__(self) -> None:
        self._mappings: Dict[tuple, List[ToolMapping]] = {}

    def add_mapping(
        self,
        source_name: str,
        source_version: str,
        annotation_type: str
    ) -> ToolMapping:
        mapping = ToolMapping(annotation_type, source_name, source_version)
        key = (source_name, source_version)
        self._mappings.setdefault(key, []).append(mapping)
        return mapping

    def get_source_mappings(
        self,
        source_name: str,
        source_version: str
    ) -> List[ToolMapping]:
        """Get the tool mappings registered for a measurement source.

        Parameters
        ----------
        source_name: str
            Name of the source, e.g. ``"Cornerstone3DTools"``
        source_version: str
            Version of the source

        Returns
        -------
        List[srmeasurements.services.ToolMapping]
            Registered mappings (empty if the source is unknown)

        """
        return list(self._mappings.get((source_name, source_version), []))


class AnnotationStore:

    """Store of annotations grouped by frame of reference."""

    def __init__(self) -> None:
        self._annotations: Dict[Optional[str], Dict[str, Any]] = {}

    def add_annotation(
        self,
        annotation: Any,
        frame_of_reference_uid: Optional[str]
    ) -> None:
        group = self._annotations.setdefault(frame_of_reference_uid, {})
        group[annotation.annotation_uid] = annotation

    def get_annotations(
        self,
        frame_of_reference_uid: Optional[str] = None
    ) -> List[Any]:
        """Get annotations, optionally only those of a frame of reference."""
        if frame_of_reference_uid is not None:
            return list(
                self._annotations.get(frame_of_reference_uid, {}).values()
            )
        return [
            annotation
            for group in self._annotations.values()
            for annotation in group.values()
        ]

    def get_annotation(self, annotation_uid: str) -> Optional[Any]:
        for group in self._annotations.values():
            if annotation_uid in group:
                return group[annotation_uid]
        return None


_WADORS_PATTERN = re.compile(
    r'/studies/(?P<study>[^/]+)'
    r'/series/(?P<series>[^/]+)'
    r'/instances/(?P<instance>[^/]+)'
    r'(?:/frames/(?P<frame>\d+))?'
)


def get_uids_from_image_id(image_id: str) -> Dict[str, Any]:
    """Get the UIDs of the image that is identified by an image ID.

    Supports DICOMweb style identifiers (``wadors:`` and ``wadouri:`` scheme
    prefixes).

    Parameters
    ----------
    image_id: str
        Image ID, e.g.
        ``wadors:https://host/studies/1.2/series/1.3/instances/1.4/frames/1``

    Returns
    -------
    Dict[str, Any]
        Study, series and SOP Instance UID and the frame number (``None``
        if the image ID does not identify a frame)

    Raises
    ------
    ValueError
        When the image ID cannot be parsed

    """
    url = image_id.split(':', 1)[1] if image_id.startswith('wado') else \
        image_id
    match = _WADORS_PATTERN.search(url)
    if match is not None:
        frame = match.group('frame')
        return {
            'StudyInstanceUID': match.group('study'),
            'SeriesInstanceUID': match.group('series'),
            'SOPInstanceUID': match.group('instance'),
            'frameNumber': int(frame) if frame is not None else None,
        }

    query = parse_qs(urlsplit(url).query)
    if 'objectUID' in query:
        frame_values = query.get('frame')
        return {
            'StudyInstanceUID': query.get('studyUID', [None])[0],
            'SeriesInstanceUID': query.get('seriesUID', [None])[0],
            'SOPInstanceUID': query['objectUID'][0],
            'frameNumber': int(frame_values[0]) if frame_values else None,
        }

    raise ValueError(f'Cannot determine UIDs of image ID "{image_id}".')
