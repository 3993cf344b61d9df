from abc import ABC, abstractmethod

from image_insight.config import Settings
from image_insight.core.types import AnalysisPayload, SelectedImage


class Backend(ABC):
    @abstractmethod
    async def upload(self, image: SelectedImage) -> str:
        """Store the image and return a URL that resolves to it."""
        raise NotImplementedError

    @abstractmethod
    async def analyze(self, image_url: str) -> AnalysisPayload:
        raise NotImplementedError

    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError


def create_backend(settings: Settings) -> Backend:
    backend = settings.backend.strip().lower()
    if backend == 'http':
        from image_insight.providers.http_backend import HttpBackend

        return HttpBackend(
            base_url=settings.backend_base_url,
            upload_path=settings.upload_path,
            analyze_path=settings.analyze_path,
            timeout_ms=settings.backend_timeout_ms,
        )
    if backend == 'dummy':
        from image_insight.providers.dummy_backend import DummyBackend

        return DummyBackend(bucket_url=settings.dummy_bucket_url)
    raise ValueError(f'Unsupported BACKEND={settings.backend!r}')
