import logging
import time
import uuid

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse

from image_insight.config import get_settings
from image_insight.core.backend import create_backend
from image_insight.core.controller import WorkflowController
from image_insight.core.errors import WorkflowError
from image_insight.core.render import render_results
from image_insight.core.state import WorkflowState
from image_insight.core.types import OperationResult
from image_insight.logging_setup import setup_logging
from image_insight.schemas import (
    ErrorResponse,
    HealthResponse,
    ImageUrlRequest,
    OperationResponse,
    StateResponse,
)
from image_insight.utils.image_io import build_selected_image

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger('image_insight')

app = FastAPI(title='Image Insight', version=settings.version)
started_at = time.time()


@app.on_event('startup')
def startup_event() -> None:
    backend = create_backend(settings)
    app.state.controller = WorkflowController(
        backend=backend,
        state=WorkflowState(),
        serialize_operations=settings.serialize_operations,
    )
    logger.info(
        'Workflow initialized backend=%s base_url=%s serialize_operations=%s',
        backend.name,
        settings.backend_base_url,
        settings.serialize_operations,
    )


def _controller() -> WorkflowController:
    return app.state.controller


def _state_response(controller: WorkflowController) -> StateResponse:
    snapshot = controller.state.snapshot()
    image = snapshot.selected_image
    return StateResponse(
        selected_image=(
            {
                'filename': image.filename,
                'mime_type': image.mime_type,
                'size_bytes': image.size_bytes,
            }
            if image
            else None
        ),
        remote_image_url=snapshot.remote_image_url,
        preview_url=snapshot.remote_image_url or None,
        labels=[{'name': label.name, 'confidence': label.confidence} for label in snapshot.labels],
        text_detections=[
            {'text': text.text, 'confidence': text.confidence, 'kind': text.kind}
            for text in snapshot.text_detections
        ],
        upload_status=snapshot.upload_status.value,
        analysis_status=snapshot.analysis_status.value,
        busy=snapshot.busy,
        can_upload=controller.can_upload,
        can_analyze=controller.can_analyze,
        rendered=render_results(snapshot),
    )


def _operation_response(controller: WorkflowController, result: OperationResult) -> OperationResponse:
    return OperationResponse(
        ok=result.ok,
        outcome=result.outcome.value,
        error=result.error,
        message=result.message,
        state=_state_response(controller),
    )


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
    payload = ErrorResponse(error=exc.code, message=exc.message, request_id=request_id)
    return JSONResponse(status_code=exc.status_code or 400, content=payload.model_dump())


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception):
    request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
    logger.exception('Unhandled exception request_id=%s', request_id)
    payload = ErrorResponse(
        error='UNEXPECTED_SERVER_ERROR',
        message='Unexpected server error.',
        request_id=request_id,
    )
    return JSONResponse(status_code=500, content=payload.model_dump())


@app.get('/health', response_model=HealthResponse)
def health():
    return HealthResponse(
        ok=True,
        version=settings.version,
        backend=_controller().backend.name,
        uptime_s=round(time.time() - started_at, 3),
    )


@app.get('/state', response_model=StateResponse)
def get_state():
    return _state_response(_controller())


@app.post('/image', response_model=StateResponse)
async def select_image(image: UploadFile | None = File(default=None)):
    content = await image.read() if image is not None else None
    selected = build_selected_image(
        content,
        image.filename if image is not None else None,
        image.content_type if image is not None else None,
    )
    controller = _controller()
    controller.select_image(selected)
    return _state_response(controller)


@app.put('/image-url', response_model=StateResponse)
def set_image_url(payload: ImageUrlRequest):
    controller = _controller()
    controller.set_remote_image_url(payload.image_url)
    return _state_response(controller)


@app.post('/upload', response_model=OperationResponse)
async def upload():
    controller = _controller()
    result = await controller.submit_image()
    return _operation_response(controller, result)


@app.post('/analyze', response_model=OperationResponse)
async def analyze():
    controller = _controller()
    result = await controller.request_analysis()
    return _operation_response(controller, result)
