import logging
import math
from typing import Any

import httpx

from image_insight.core.backend import Backend
from image_insight.core.errors import ErrorKind, WorkflowError
from image_insight.core.types import AnalysisPayload, Label, SelectedImage, TextDetection
from image_insight.utils.timings import measure_ms

logger = logging.getLogger('image_insight.http_backend')


def _join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _as_confidence(value: Any) -> float:
    try:
        confidence = float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(confidence):
        return 0.0
    return max(0.0, min(100.0, confidence))


def _parse_labels(rows: Any) -> list[Label]:
    if not isinstance(rows, list):
        return []
    return [
        Label(name=str(row.get('Name') or ''), confidence=_as_confidence(row.get('Confidence')))
        for row in rows
        if isinstance(row, dict)
    ]


def _parse_texts(rows: Any) -> list[TextDetection]:
    if not isinstance(rows, list):
        return []
    return [
        TextDetection(
            text=str(row.get('DetectedText') or ''),
            confidence=_as_confidence(row.get('Confidence')),
            kind=str(row.get('Type') or ''),
        )
        for row in rows
        if isinstance(row, dict)
    ]


def _json_object(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError as exc:
        raise WorkflowError(
            ErrorKind.MALFORMED_RESPONSE,
            'Backend response is not valid JSON.',
            status_code=response.status_code,
        ) from exc
    if not isinstance(body, dict):
        raise WorkflowError(
            ErrorKind.MALFORMED_RESPONSE,
            f'Expected a JSON object, got {type(body).__name__}.',
            status_code=response.status_code,
        )
    return body


class HttpBackend(Backend):
    def __init__(
        self,
        base_url: str = 'http://localhost:3000',
        upload_path: str = '/upload',
        analyze_path: str = '/analyze',
        timeout_ms: int = 30000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._upload_path = upload_path
        self._analyze_path = analyze_path
        self._timeout = max(int(timeout_ms), 1000) / 1000.0
        self._transport = transport

    @property
    def name(self) -> str:
        return 'http'

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = _join_url(self._base_url, path)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                with measure_ms() as elapsed:
                    response = await client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise WorkflowError(
                ErrorKind.BACKEND_REJECTION,
                f'{method} {path} returned HTTP {exc.response.status_code}.',
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise WorkflowError(
                ErrorKind.TRANSPORT_FAILURE,
                f'{method} {path} failed: {exc.__class__.__name__}: {exc}',
            ) from exc
        logger.debug('backend call method=%s path=%s status=%s latency_ms=%s', method, path, response.status_code, elapsed())
        return response

    async def upload(self, image: SelectedImage) -> str:
        response = await self._send(
            'POST',
            self._upload_path,
            files={'image': (image.filename, image.content, image.mime_type)},
        )
        body = _json_object(response)
        image_url = body.get('imageUrl')
        if not isinstance(image_url, str):
            raise WorkflowError(
                ErrorKind.MALFORMED_RESPONSE,
                'Upload response has no string field imageUrl.',
                status_code=response.status_code,
                details={'keys': sorted(body.keys())},
            )
        return image_url

    async def analyze(self, image_url: str) -> AnalysisPayload:
        response = await self._send('GET', self._analyze_path, params={'imageUrl': image_url})
        body = _json_object(response)
        return AnalysisPayload(
            labels=_parse_labels(body.get('labels') or []),
            texts=_parse_texts(body.get('texts') or []),
        )
