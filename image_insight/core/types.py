from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class SelectedImage:
    content: bytes = field(repr=False)
    filename: str
    mime_type: str

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class Label:
    name: str
    confidence: float


class TextKind(str, Enum):
    WORD = 'WORD'
    LINE = 'LINE'


@dataclass(frozen=True)
class TextDetection:
    text: str
    confidence: float
    kind: str


@dataclass(frozen=True)
class AnalysisPayload:
    """Backend answer before any client-side filtering; texts of every kind."""

    labels: list[Label]
    texts: list[TextDetection]


@dataclass(frozen=True)
class AnalysisResult:
    labels: tuple[Label, ...]
    text_detections: tuple[TextDetection, ...]


class Operation(str, Enum):
    UPLOAD = 'upload'
    ANALYSIS = 'analysis'


class OperationStatus(str, Enum):
    IDLE = 'idle'
    BUSY = 'busy'
    ERROR = 'error'


class Outcome(str, Enum):
    SUCCESS = 'success'
    FAILURE = 'failure'
    SKIPPED = 'skipped'


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    outcome: Outcome
    value: T | None = None
    error: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @classmethod
    def success(cls, value: T) -> 'OperationResult[T]':
        return cls(outcome=Outcome.SUCCESS, value=value)

    @classmethod
    def failure(cls, error: str, message: str) -> 'OperationResult[T]':
        return cls(outcome=Outcome.FAILURE, error=error, message=message)

    @classmethod
    def skipped(cls, message: str) -> 'OperationResult[T]':
        return cls(outcome=Outcome.SKIPPED, message=message)
