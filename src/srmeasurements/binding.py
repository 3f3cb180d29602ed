"""Binding of extracted measurements to images and frames of reference."""
import copy
import logging
from typing import Any, Callable, Dict, List, Optional

from srmeasurements.annotation import build_annotation
from srmeasurements.services import (
    AnnotationStore,
    DataSource,
    DisplaySetService,
    Subscription,
    get_uids_from_image_id as default_get_uids_from_image_id,
)
from srmeasurements.sr.content import Measurement

logger = logging.getLogger(__name__)


#: Hook that may rewrite a measurement before it is bound. It is called with
#: the measurement and the Study and Series Instance UID of the SR document.
BeforeAddMeasurementHook = Callable[[Measurement, str, str], Measurement]


def _get_image_key(sop_instance_uid: str, frame_number: Optional[int]) -> str:
    return f'{sop_instance_uid}:{int(frame_number or 1)}'


class MeasurementBinder:

    """Binds measurements of SR display sets to image display sets.

    Each binding pass only considers measurements that have not been bound
    yet. Bound measurements are displayed by adding an annotation to the
    annotation store.

    """

    def __init__(
        self,
        data_source: DataSource,
        annotation_store: AnnotationStore,
        get_uids_from_image_id: Callable[[str], Dict[str, Any]] = (
            default_get_uids_from_image_id
        ),
        on_before_add_measurement: Optional[BeforeAddMeasurementHook] = None
    ) -> None:
        """
        Parameters
        ----------
        data_source: srmeasurements.services.DataSource
            Source of the image IDs of display sets
        annotation_store: srmeasurements.services.AnnotationStore
            Sink of the annotations of bound measurements
        get_uids_from_image_id: Callable[[str], Dict[str, Any]], optional
            Function that determines the SOP Instance UID and frame number of
            the image identified by an image ID
        on_before_add_measurement: Union[Callable[[srmeasurements.sr.Measurement, str, str], srmeasurements.sr.Measurement], None], optional
            Hook that may rewrite a measurement before it is bound

        """  # noqa: E501
        self._data_source = data_source
        self._annotation_store = annotation_store
        self._get_uids_from_image_id = get_uids_from_image_id
        self._on_before_add_measurement = on_before_add_measurement

    def _apply_hook(
        self,
        measurement: Measurement,
        sr_display_set: Any
    ) -> Measurement:
        if self._on_before_add_measurement is None:
            return measurement
        try:
            return self._on_before_add_measurement(
                copy.deepcopy(measurement),
                sr_display_set.study_instance_uid,
                sr_display_set.series_instance_uid,
            )
        except Exception as error:
            logger.warning(
                'hook failed for measurement '
                f'"{measurement.tracking_unique_identifier}", the unmodified '
                f'measurement is used: {error}'
            )
            return measurement

    def _get_image_lookup(self, display_set: Any) -> Dict[str, str]:
        lookup: Dict[str, str] = {}
        image_ids = self._data_source.get_image_ids_for_display_set(
            display_set
        )
        for image_id in image_ids:
            try:
                uids = self._get_uids_from_image_id(image_id)
            except ValueError as error:
                logger.warning(f'skip image "{image_id}": {error}')
                continue
            key = _get_image_key(
                uids['SOPInstanceUID'],
                uids.get('frameNumber')
            )
            lookup[key] = image_id
        return lookup

    def bind(
        self,
        sr_display_set: Any,
        display_set: Any
    ) -> List[Measurement]:
        """Bind pending measurements of an SR display set to the images or
        the frame of reference of a display set.

        Parameters
        ----------
        sr_display_set: srmeasurements.SRDisplaySet
            Loaded SR display set
        display_set: Any
            Candidate display set, e.g.
            :class:`srmeasurements.services.ImageDisplaySet`

        Returns
        -------
        List[srmeasurements.sr.Measurement]
            Measurements that got bound in this pass

        """
        if getattr(display_set, 'unsupported', False):
            logger.debug(
                'skip unsupported display set '
                f'"{display_set.display_set_instance_uid}"'
            )
            return []

        pending = [
            m for m in (sr_display_set.measurements or [])
            if m is not None and not m.loaded
        ]
        if len(pending) == 0:
            return []

        bound: List[Measurement] = []
        display_set_uid = display_set.display_set_instance_uid
        frame_of_reference_uid = getattr(
            display_set, 'frame_of_reference_uid', None
        )
        lookup: Optional[Dict[str, str]] = None

        for index in range(len(pending) - 1, -1, -1):
            canonical = pending[index]
            measurement = self._apply_hook(canonical, sr_display_set)
            coordinate = measurement.primary_coordinate
            if coordinate is None:
                continue

            if (
                sr_display_set.is_3d and
                coordinate.is_3d and
                frame_of_reference_uid is not None and
                coordinate.referenced_frame_of_reference_uid ==
                frame_of_reference_uid
            ):
                annotation = build_annotation(
                    measurement,
                    image_id=None,
                    frame_number=None,
                    frame_of_reference_uid=frame_of_reference_uid,
                )
                canonical.bind_to_frame_of_reference(
                    display_set_instance_uid=display_set_uid,
                    frame_of_reference_uid=frame_of_reference_uid,
                )
                self._annotation_store.add_annotation(
                    annotation,
                    frame_of_reference_uid
                )
                logger.debug(
                    'bound measurement '
                    f'"{canonical.tracking_unique_identifier}" to frame of '
                    f'reference "{frame_of_reference_uid}"'
                )
                bound.append(canonical)
                del pending[index]
                continue

            sop_instance_uid = coordinate.referenced_sop_instance_uid
            if sop_instance_uid is None:
                continue
            frame_number = int(coordinate.referenced_frame_number or 1)
            if lookup is None:
                lookup = self._get_image_lookup(display_set)
            key = _get_image_key(sop_instance_uid, frame_number)
            image_id = lookup.get(key)
            if image_id is None:
                continue
            if not any(
                c.references(sop_instance_uid, frame_number)
                for c in measurement.coords
            ):
                continue

            annotation = build_annotation(
                measurement,
                image_id=image_id,
                frame_number=frame_number,
                frame_of_reference_uid=frame_of_reference_uid,
            )
            canonical.bind_to_image(
                image_id=image_id,
                display_set_instance_uid=display_set_uid,
                sop_instance_uid=sop_instance_uid,
                frame_number=frame_number,
                frame_of_reference_uid=frame_of_reference_uid,
            )
            self._annotation_store.add_annotation(
                annotation,
                frame_of_reference_uid
            )
            logger.debug(
                f'bound measurement "{canonical.tracking_unique_identifier}" '
                f'to frame {frame_number} of image "{sop_instance_uid}"'
            )
            bound.append(canonical)
            del pending[index]

        return bound

    def attach(
        self,
        sr_display_set: Any,
        display_set_service: DisplaySetService
    ) -> Subscription:
        """Bind measurements to the active display sets and to display sets
        that are added later on.

        Parameters
        ----------
        sr_display_set: srmeasurements.SRDisplaySet
            Loaded SR display set
        display_set_service: srmeasurements.services.DisplaySetService
            Registry of display sets

        Returns
        -------
        srmeasurements.services.Subscription
            Subscription to added display sets, which needs to be cancelled
            once the SR display set is no longer used

        """
        for display_set in display_set_service.active_display_sets:
            if display_set is sr_display_set:
                continue
            self.bind(sr_display_set, display_set)

        def on_display_sets_added(data: Dict[str, Any]) -> None:
            for display_set in data.get('display_sets_added', []):
                if display_set is sr_display_set:
                    continue
                self.bind(sr_display_set, display_set)

        return display_set_service.subscribe(
            DisplaySetService.EVENTS.DISPLAY_SETS_ADDED,
            on_display_sets_added
        )
