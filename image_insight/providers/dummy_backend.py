import uuid

from image_insight.core.backend import Backend
from image_insight.core.errors import ErrorKind, WorkflowError
from image_insight.core.types import AnalysisPayload, Label, SelectedImage, TextDetection


class DummyBackend(Backend):
    def __init__(self, bucket_url: str = 'https://bucket.local') -> None:
        self._bucket_url = bucket_url.rstrip('/')
        self.upload_calls = 0
        self.analyze_calls = 0

    @property
    def name(self) -> str:
        return 'dummy'

    async def upload(self, image: SelectedImage) -> str:
        self.upload_calls += 1
        key = f'{uuid.uuid4().hex}-{image.filename}'
        return f'{self._bucket_url}/{key}'

    async def analyze(self, image_url: str) -> AnalysisPayload:
        self.analyze_calls += 1
        if not image_url.strip():
            raise WorkflowError(ErrorKind.BACKEND_REJECTION, 'imageUrl is required.', status_code=400)
        return AnalysisPayload(
            labels=[
                Label(name='Cat', confidence=98.2),
                Label(name='Pet', confidence=97.64),
                Label(name='Animal', confidence=95.1),
            ],
            texts=[
                TextDetection(text='Hello World', confidence=88.5, kind='LINE'),
                TextDetection(text='Hello', confidence=91.0, kind='WORD'),
                TextDetection(text='World', confidence=86.0, kind='WORD'),
            ],
        )
