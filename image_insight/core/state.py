import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from image_insight.core.types import (
    Label,
    Operation,
    OperationStatus,
    SelectedImage,
    TextDetection,
)

logger = logging.getLogger('image_insight.state')

Listener = Callable[['WorkflowState'], None]


@dataclass(frozen=True)
class StateSnapshot:
    selected_image: SelectedImage | None
    remote_image_url: str
    labels: tuple[Label, ...]
    text_detections: tuple[TextDetection, ...]
    upload_status: OperationStatus
    analysis_status: OperationStatus

    @property
    def busy(self) -> bool:
        return OperationStatus.BUSY in (self.upload_status, self.analysis_status)


class WorkflowState:
    """Session-local holder for the current subject and its analysis results.

    Result collections are tuples and are only ever swapped as a pair, so a
    reader never sees labels from one analysis next to texts from another.
    Every public mutation notifies subscribers exactly once.
    """

    def __init__(self) -> None:
        self._selected_image: SelectedImage | None = None
        self._remote_image_url = ''
        self._labels: tuple[Label, ...] = ()
        self._text_detections: tuple[TextDetection, ...] = ()
        self._statuses = {operation: OperationStatus.IDLE for operation in Operation}
        self._generation = 0
        self._listeners: list[Listener] = []

    @property
    def selected_image(self) -> SelectedImage | None:
        return self._selected_image

    @property
    def remote_image_url(self) -> str:
        return self._remote_image_url

    @property
    def labels(self) -> tuple[Label, ...]:
        return self._labels

    @property
    def text_detections(self) -> tuple[TextDetection, ...]:
        return self._text_detections

    @property
    def upload_status(self) -> OperationStatus:
        return self._statuses[Operation.UPLOAD]

    @property
    def analysis_status(self) -> OperationStatus:
        return self._statuses[Operation.ANALYSIS]

    @property
    def generation(self) -> int:
        """Bumped whenever the user picks a file or edits the URL."""
        return self._generation

    def status(self, operation: Operation) -> OperationStatus:
        return self._statuses[operation]

    def any_busy(self) -> bool:
        return OperationStatus.BUSY in self._statuses.values()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            selected_image=self._selected_image,
            remote_image_url=self._remote_image_url,
            labels=self._labels,
            text_detections=self._text_detections,
            upload_status=self.upload_status,
            analysis_status=self.analysis_status,
        )

    def select_image(self, image: SelectedImage) -> None:
        if image is None:
            raise ValueError('select_image requires an image.')
        self._selected_image = image
        self._remote_image_url = ''
        self._clear_results()
        self._generation += 1
        self._notify()

    def set_remote_image_url(self, url: str) -> None:
        self._remote_image_url = '' if url is None else str(url)
        self._clear_results()
        self._generation += 1
        self._notify()

    def apply_uploaded_url(self, url: str) -> None:
        """Point the subject at a freshly uploaded copy of the selected image."""
        self._remote_image_url = url
        self._clear_results()
        self._notify()

    def replace_results(self, labels: Iterable[Label], text_detections: Iterable[TextDetection]) -> None:
        self._labels = tuple(labels)
        self._text_detections = tuple(text_detections)
        self._notify()

    def set_status(self, operation: Operation, status: OperationStatus) -> None:
        if self._statuses[operation] == status:
            return
        self._statuses[operation] = status
        self._notify()

    def _clear_results(self) -> None:
        self._labels = ()
        self._text_detections = ()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception('State listener failed listener=%r', listener)
