from collections.abc import Iterable

from image_insight.core.state import StateSnapshot, WorkflowState
from image_insight.core.types import Label, TextDetection


def format_confidence(value: float) -> str:
    return f'{float(value):.2f}%'


def render_labels(labels: Iterable[Label]) -> list[str]:
    return [f'{label.name}: {format_confidence(label.confidence)}' for label in labels]


def render_text_detections(texts: Iterable[TextDetection]) -> list[str]:
    return [f'{text.text}: {format_confidence(text.confidence)}' for text in texts]


def render_results(state: StateSnapshot | WorkflowState) -> list[str]:
    """Lines for the results panel; a heading only appears with its entries."""
    lines: list[str] = []
    labels = render_labels(state.labels)
    if labels:
        lines.append('Detected Labels:')
        lines.extend(labels)
    texts = render_text_detections(state.text_detections)
    if texts:
        lines.append('Detected Texts:')
        lines.extend(texts)
    return lines
