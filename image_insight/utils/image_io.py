import mimetypes
from pathlib import Path

from image_insight.core.errors import WorkflowError
from image_insight.core.types import SelectedImage


def build_selected_image(content: bytes | None, filename: str | None, mime_type: str | None) -> SelectedImage:
    if content is None:
        raise WorkflowError('MISSING_IMAGE', 'Missing image upload (field name: image).', status_code=400)
    resolved_mime = (mime_type or '').strip().lower()
    if not resolved_mime and filename:
        resolved_mime = mimetypes.guess_type(filename)[0] or ''
    if not resolved_mime.startswith('image/'):
        raise WorkflowError(
            'UNSUPPORTED_MEDIA_TYPE',
            f'Expected an image/* upload, got {resolved_mime or "unknown"}.',
            status_code=415,
        )
    return SelectedImage(content=content, filename=filename or 'image', mime_type=resolved_mime)


def load_selected_image(path: str | Path) -> SelectedImage:
    file_path = Path(path)
    return build_selected_image(file_path.read_bytes(), file_path.name, mimetypes.guess_type(file_path.name)[0])
