import asyncio

import httpx
import pytest

from image_insight.core.backend import Backend
from image_insight.core.controller import WorkflowController, filter_word_detections
from image_insight.core.errors import ErrorKind, WorkflowError
from image_insight.core.types import (
    AnalysisPayload,
    Label,
    OperationStatus,
    Outcome,
    SelectedImage,
    TextDetection,
)
from image_insight.providers.dummy_backend import DummyBackend
from image_insight.providers.http_backend import HttpBackend

HAPPY_ANALYSIS = {
    'labels': [{'Name': 'Cat', 'Confidence': 98.2}],
    'texts': [
        {'DetectedText': 'Hello', 'Confidence': 91.0, 'Type': 'WORD'},
        {'DetectedText': 'Line1', 'Confidence': 80.0, 'Type': 'LINE'},
    ],
}


def make_image(name: str = 'x.jpg') -> SelectedImage:
    return SelectedImage(content=b'\xff\xd8\xff' + b'\x00' * 2045, filename=name, mime_type='image/jpeg')


class RecordingBackend(Backend):
    """Backend double whose answers are scripted per call and can be held open."""

    def __init__(self, image_url: str = 'https://bucket/x.jpg', payload: AnalysisPayload | None = None):
        self.image_url = image_url
        self.payload = payload or AnalysisPayload(labels=[], texts=[])
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, object]] = []

    @property
    def name(self) -> str:
        return 'recording'

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def upload(self, image: SelectedImage) -> str:
        self.calls.append(('upload', image.filename))
        await self._wait()
        return self.image_url

    async def analyze(self, image_url: str) -> AnalysisPayload:
        self.calls.append(('analyze', image_url))
        await self._wait()
        return self.payload


def http_controller(routes: dict) -> tuple[WorkflowController, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return routes[request.url.path]

    backend = HttpBackend(base_url='http://localhost:3000', transport=httpx.MockTransport(handler))
    return WorkflowController(backend), requests


@pytest.mark.asyncio
async def test_happy_path_upload_then_analyze():
    controller, requests = http_controller(
        {
            '/upload': httpx.Response(200, json={'imageUrl': 'https://bucket/x.jpg'}),
            '/analyze': httpx.Response(200, json=HAPPY_ANALYSIS),
        }
    )
    controller.select_image(make_image())

    uploaded = await controller.submit_image()
    assert uploaded.ok
    assert controller.state.remote_image_url == 'https://bucket/x.jpg'

    analyzed = await controller.request_analysis()

    assert analyzed.ok
    assert controller.state.labels == (Label(name='Cat', confidence=98.2),)
    assert controller.state.text_detections == (TextDetection(text='Hello', confidence=91.0, kind='WORD'),)
    assert requests[1].url.params['imageUrl'] == 'https://bucket/x.jpg'
    assert controller.state.upload_status == OperationStatus.IDLE
    assert controller.state.analysis_status == OperationStatus.IDLE


@pytest.mark.asyncio
async def test_upload_failure_leaves_url_empty_and_does_not_raise():
    controller, _ = http_controller({'/upload': httpx.Response(500, json={'error': 'bucket down'})})
    controller.select_image(make_image())

    result = await controller.submit_image()

    assert result.outcome == Outcome.FAILURE
    assert result.error == ErrorKind.BACKEND_REJECTION.value
    assert controller.state.remote_image_url == ''
    assert controller.state.selected_image is not None
    assert controller.state.upload_status == OperationStatus.ERROR


@pytest.mark.asyncio
async def test_pasted_url_is_analyzed_without_upload():
    controller, requests = http_controller({'/analyze': httpx.Response(200, json=HAPPY_ANALYSIS)})

    controller.set_remote_image_url('https://bucket/y.png')
    result = await controller.request_analysis()

    assert result.ok
    assert [request.url.path for request in requests] == ['/analyze']
    assert requests[0].url.params['imageUrl'] == 'https://bucket/y.png'
    assert [label.name for label in controller.state.labels] == ['Cat']
    assert [text.text for text in controller.state.text_detections] == ['Hello']


@pytest.mark.asyncio
async def test_empty_analysis_body_defaults_to_empty_results():
    backend = RecordingBackend()
    controller = WorkflowController(backend)
    controller.set_remote_image_url('https://bucket/y.png')

    result = await controller.request_analysis()

    assert result.ok
    assert controller.state.labels == ()
    assert controller.state.text_detections == ()


@pytest.mark.asyncio
async def test_guards_skip_without_network_calls():
    backend = RecordingBackend()
    controller = WorkflowController(backend)
    before = controller.state.snapshot()

    upload = await controller.submit_image()
    analysis = await controller.request_analysis()

    assert upload.outcome == Outcome.SKIPPED
    assert analysis.outcome == Outcome.SKIPPED
    assert backend.calls == []
    assert controller.state.snapshot() == before


@pytest.mark.asyncio
async def test_selecting_or_editing_clears_results():
    controller = WorkflowController(DummyBackend())
    controller.set_remote_image_url('https://bucket/y.png')
    await controller.request_analysis()
    assert controller.state.labels

    controller.select_image(make_image())
    assert controller.state.labels == ()
    assert controller.state.text_detections == ()
    assert controller.state.remote_image_url == ''

    controller.set_remote_image_url('https://bucket/y.png')
    await controller.request_analysis()
    controller.set_remote_image_url('https://bucket/y.png#edited')
    assert controller.state.labels == ()
    assert controller.state.text_detections == ()


@pytest.mark.asyncio
async def test_analysis_replaces_results_wholesale():
    backend = RecordingBackend(
        payload=AnalysisPayload(
            labels=[Label('A', 90.0), Label('B', 80.0), Label('C', 70.0)],
            texts=[TextDetection('one', 90.0, 'WORD'), TextDetection('two', 90.0, 'WORD')],
        )
    )
    controller = WorkflowController(backend)
    controller.set_remote_image_url('https://bucket/y.png')
    await controller.request_analysis()

    backend.payload = AnalysisPayload(labels=[Label('D', 60.0)], texts=[TextDetection('line', 50.0, 'LINE')])
    await controller.request_analysis()

    assert controller.state.labels == (Label('D', 60.0),)
    assert controller.state.text_detections == ()


@pytest.mark.asyncio
async def test_failed_analysis_keeps_previous_results():
    backend = RecordingBackend(payload=AnalysisPayload(labels=[Label('Cat', 98.2)], texts=[]))
    controller = WorkflowController(backend)
    controller.set_remote_image_url('https://bucket/y.png')
    await controller.request_analysis()

    backend.error = WorkflowError(ErrorKind.TRANSPORT_FAILURE, 'connection reset')
    result = await controller.request_analysis()

    assert result.error == ErrorKind.TRANSPORT_FAILURE.value
    assert controller.state.labels == (Label('Cat', 98.2),)
    assert controller.state.analysis_status == OperationStatus.ERROR


def test_filter_word_detections_keeps_order():
    texts = [
        TextDetection('a', 1.0, 'WORD'),
        TextDetection('a b', 1.0, 'LINE'),
        TextDetection('b', 2.0, 'WORD'),
        TextDetection('?', 3.0, 'PARAGRAPH'),
        TextDetection('c', 3.0, 'word'),
    ]

    assert [text.text for text in filter_word_detections(texts)] == ['a', 'b']


@pytest.mark.asyncio
async def test_status_is_busy_only_while_request_is_pending():
    backend = RecordingBackend()
    backend.gate = asyncio.Event()
    controller = WorkflowController(backend)
    controller.select_image(make_image())

    task = asyncio.create_task(controller.submit_image())
    await asyncio.sleep(0)
    assert controller.state.upload_status == OperationStatus.BUSY
    assert controller.can_upload is False

    backend.gate.set()
    result = await task

    assert result.ok
    assert controller.state.upload_status == OperationStatus.IDLE
    assert controller.can_analyze is True


@pytest.mark.asyncio
async def test_serialized_triggers_refuse_while_busy():
    backend = RecordingBackend()
    backend.gate = asyncio.Event()
    controller = WorkflowController(backend)
    controller.select_image(make_image())
    task = asyncio.create_task(controller.submit_image())
    await asyncio.sleep(0)

    again = await controller.submit_image()
    controller.set_remote_image_url('https://bucket/pasted.png')
    analysis = await controller.request_analysis()

    assert again.error == ErrorKind.OPERATION_IN_PROGRESS.value
    assert analysis.error == ErrorKind.OPERATION_IN_PROGRESS.value
    assert backend.calls == [('upload', 'x.jpg')]
    backend.gate.set()
    await task


@pytest.mark.asyncio
async def test_response_for_replaced_subject_is_discarded():
    backend = RecordingBackend(payload=AnalysisPayload(labels=[Label('Cat', 98.2)], texts=[]))
    backend.gate = asyncio.Event()
    controller = WorkflowController(backend)
    controller.set_remote_image_url('https://bucket/old.png')
    task = asyncio.create_task(controller.request_analysis())
    await asyncio.sleep(0)

    controller.set_remote_image_url('https://bucket/new.png')
    backend.gate.set()
    result = await task

    assert result.error == ErrorKind.SUPERSEDED.value
    assert controller.state.labels == ()
    assert controller.state.remote_image_url == 'https://bucket/new.png'
    assert controller.state.analysis_status == OperationStatus.IDLE


@pytest.mark.asyncio
async def test_overlap_allowed_when_serialization_disabled():
    backend = RecordingBackend()
    backend.gate = asyncio.Event()
    controller = WorkflowController(backend, serialize_operations=False)
    controller.select_image(make_image())

    first = asyncio.create_task(controller.submit_image())
    second = asyncio.create_task(controller.submit_image())
    await asyncio.sleep(0)
    backend.gate.set()
    results = await asyncio.gather(first, second)

    assert [result.ok for result in results] == [True, True]
    assert backend.calls == [('upload', 'x.jpg'), ('upload', 'x.jpg')]
    assert controller.state.remote_image_url == 'https://bucket/x.jpg'


@pytest.mark.asyncio
async def test_successful_upload_clears_results_of_previous_url():
    backend = RecordingBackend(payload=AnalysisPayload(labels=[Label('Cat', 98.2)], texts=[]))
    controller = WorkflowController(backend)
    controller.select_image(make_image())
    controller.state.replace_results([Label('Stale', 10.0)], [])

    await controller.submit_image()

    assert controller.state.labels == ()


@pytest.mark.asyncio
async def test_unexpected_upload_error_propagates_and_marks_error():
    backend = RecordingBackend()
    backend.error = RuntimeError('backend bug')
    controller = WorkflowController(backend)
    controller.select_image(make_image())

    with pytest.raises(RuntimeError):
        await controller.submit_image()

    assert controller.state.upload_status == OperationStatus.ERROR
    assert controller.state.remote_image_url == ''
    assert controller.can_upload is True


@pytest.mark.asyncio
async def test_unexpected_analysis_error_propagates_and_marks_error():
    backend = RecordingBackend()
    backend.error = RuntimeError('backend bug')
    controller = WorkflowController(backend)
    controller.set_remote_image_url('https://bucket/y.png')

    with pytest.raises(RuntimeError):
        await controller.request_analysis()

    assert controller.state.analysis_status == OperationStatus.ERROR
    assert controller.state.labels == ()


@pytest.mark.asyncio
async def test_upload_response_discarded_after_new_image_selected():
    backend = RecordingBackend(image_url='https://bucket/old.jpg')
    backend.gate = asyncio.Event()
    controller = WorkflowController(backend)
    controller.select_image(make_image('old.jpg'))
    task = asyncio.create_task(controller.submit_image())
    await asyncio.sleep(0)

    controller.select_image(make_image('new.jpg'))
    backend.gate.set()
    result = await task

    assert result.error == ErrorKind.SUPERSEDED.value
    assert controller.state.remote_image_url == ''
    assert controller.state.selected_image.filename == 'new.jpg'
    assert controller.state.upload_status == OperationStatus.IDLE


@pytest.mark.asyncio
async def test_upload_response_discarded_after_url_edited():
    backend = RecordingBackend(image_url='https://bucket/x.jpg')
    backend.gate = asyncio.Event()
    controller = WorkflowController(backend)
    controller.select_image(make_image())
    task = asyncio.create_task(controller.submit_image())
    await asyncio.sleep(0)

    controller.set_remote_image_url('https://bucket/pasted.png')
    backend.gate.set()
    result = await task

    assert result.outcome == Outcome.FAILURE
    assert result.error == ErrorKind.SUPERSEDED.value
    assert controller.state.remote_image_url == 'https://bucket/pasted.png'
    assert controller.state.upload_status == OperationStatus.IDLE
