from enum import Enum


class ErrorKind(str, Enum):
    TRANSPORT_FAILURE = 'TRANSPORT_FAILURE'
    BACKEND_REJECTION = 'BACKEND_REJECTION'
    MALFORMED_RESPONSE = 'MALFORMED_RESPONSE'
    OPERATION_IN_PROGRESS = 'OPERATION_IN_PROGRESS'
    SUPERSEDED = 'SUPERSEDED'


class WorkflowError(Exception):
    def __init__(
        self,
        kind: ErrorKind | str,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    @property
    def code(self) -> str:
        return self.kind.value if isinstance(self.kind, ErrorKind) else str(self.kind)
