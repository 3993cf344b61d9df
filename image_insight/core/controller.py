import logging

from image_insight.core.backend import Backend
from image_insight.core.errors import ErrorKind, WorkflowError
from image_insight.core.state import WorkflowState
from image_insight.core.types import (
    AnalysisResult,
    Operation,
    OperationResult,
    OperationStatus,
    SelectedImage,
    TextDetection,
    TextKind,
)
from image_insight.utils.timings import measure_ms

logger = logging.getLogger('image_insight.controller')


def filter_word_detections(texts: list[TextDetection]) -> list[TextDetection]:
    return [text for text in texts if text.kind == TextKind.WORD]


class WorkflowController:
    """Drives the upload -> analyze -> results workflow against a backend.

    ``submit_image`` and ``request_analysis`` never raise for backend
    failures; they log the failure and hand back an ``OperationResult``.
    With ``serialize_operations`` enabled neither trigger starts while the
    other one (or itself) is still in flight.
    """

    def __init__(self, backend: Backend, state: WorkflowState | None = None, serialize_operations: bool = True) -> None:
        self._backend = backend
        self.state = state or WorkflowState()
        self._serialize = bool(serialize_operations)

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def can_upload(self) -> bool:
        return self.state.selected_image is not None and not self._blocked()

    @property
    def can_analyze(self) -> bool:
        return bool(self.state.remote_image_url) and not self._blocked()

    def _blocked(self) -> bool:
        return self._serialize and self.state.any_busy()

    def select_image(self, image: SelectedImage) -> None:
        self.state.select_image(image)
        logger.debug('image selected filename=%s mime=%s bytes=%s', image.filename, image.mime_type, image.size_bytes)

    def set_remote_image_url(self, url: str) -> None:
        self.state.set_remote_image_url(url)

    def _in_progress(self, operation: Operation) -> OperationResult:
        logger.info('%s refused: another operation is in progress', operation.value)
        return OperationResult.failure(ErrorKind.OPERATION_IN_PROGRESS.value, 'Another operation is in progress.')

    def _superseded(self, operation: Operation) -> OperationResult:
        logger.info('%s response discarded: image changed while the request was in flight', operation.value)
        return OperationResult.failure(ErrorKind.SUPERSEDED.value, 'Image changed while the request was in flight.')

    async def submit_image(self) -> OperationResult[str]:
        image = self.state.selected_image
        if image is None:
            return OperationResult.skipped('No image selected.')
        if self._blocked():
            return self._in_progress(Operation.UPLOAD)

        generation = self.state.generation
        final_status = OperationStatus.ERROR
        self.state.set_status(Operation.UPLOAD, OperationStatus.BUSY)
        try:
            with measure_ms() as elapsed:
                image_url = await self._backend.upload(image)
            if self.state.generation != generation:
                final_status = OperationStatus.IDLE
                return self._superseded(Operation.UPLOAD)
            self.state.apply_uploaded_url(image_url)
            final_status = OperationStatus.IDLE
        except WorkflowError as exc:
            logger.error(
                'Error uploading image kind=%s status_code=%s message=%s',
                exc.code,
                exc.status_code,
                exc.message,
            )
            return OperationResult.failure(exc.code, exc.message)
        finally:
            self.state.set_status(Operation.UPLOAD, final_status)

        logger.info(
            'upload ok filename=%s bytes=%s image_url=%s latency_ms=%s',
            image.filename,
            image.size_bytes,
            image_url,
            elapsed(),
        )
        return OperationResult.success(image_url)

    async def request_analysis(self) -> OperationResult[AnalysisResult]:
        image_url = self.state.remote_image_url
        if not image_url:
            return OperationResult.skipped('No image URL to analyze.')
        if self._blocked():
            return self._in_progress(Operation.ANALYSIS)

        generation = self.state.generation
        final_status = OperationStatus.ERROR
        self.state.set_status(Operation.ANALYSIS, OperationStatus.BUSY)
        try:
            with measure_ms() as elapsed:
                payload = await self._backend.analyze(image_url)
            if self.state.generation != generation or self.state.remote_image_url != image_url:
                final_status = OperationStatus.IDLE
                return self._superseded(Operation.ANALYSIS)
            result = AnalysisResult(
                labels=tuple(payload.labels),
                text_detections=tuple(filter_word_detections(payload.texts)),
            )
            self.state.replace_results(result.labels, result.text_detections)
            final_status = OperationStatus.IDLE
        except WorkflowError as exc:
            logger.error(
                'Error analyzing image kind=%s status_code=%s message=%s',
                exc.code,
                exc.status_code,
                exc.message,
            )
            return OperationResult.failure(exc.code, exc.message)
        finally:
            self.state.set_status(Operation.ANALYSIS, final_status)

        logger.info(
            'analysis ok image_url=%s labels=%s texts=%s word_texts=%s latency_ms=%s',
            image_url,
            len(result.labels),
            len(payload.texts),
            len(result.text_detections),
            elapsed(),
        )
        return OperationResult.success(result)
