from pydantic import BaseModel, Field


class LabelOut(BaseModel):
    name: str
    confidence: float = Field(ge=0.0, le=100.0)


class TextDetectionOut(BaseModel):
    text: str
    confidence: float = Field(ge=0.0, le=100.0)
    kind: str


class SelectedImageOut(BaseModel):
    filename: str
    mime_type: str
    size_bytes: int


class StateResponse(BaseModel):
    selected_image: SelectedImageOut | None = None
    remote_image_url: str = ''
    preview_url: str | None = None
    labels: list[LabelOut] = []
    text_detections: list[TextDetectionOut] = []
    upload_status: str
    analysis_status: str
    busy: bool
    can_upload: bool
    can_analyze: bool
    rendered: list[str] = []


class ImageUrlRequest(BaseModel):
    image_url: str = ''


class OperationResponse(BaseModel):
    ok: bool
    outcome: str
    error: str | None = None
    message: str | None = None
    state: StateResponse


class HealthResponse(BaseModel):
    ok: bool
    version: str
    backend: str
    uptime_s: float


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    message: str
    request_id: str | None = None
