"""
Job-specific error types.

All errors inherit from ExtractorError for easy catching.
Every error carries a `kind` string that is recorded on a failed stage
so clients can tell a cancelled run from a tool failure.

Synchronous errors (raised to the caller that triggered the operation,
never mutating job state):
- ValidationError
- NotFoundError
- ConflictError

Asynchronous errors live in execution/errors.py.
"""


class ExtractorError(Exception):
    """Base exception for all audio extractor failures."""

    kind = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ExtractorError):
    """Raised when request parameters are malformed."""

    kind = "validation"


class NotFoundError(ExtractorError):
    """Raised when a job cannot be found in the registry (or has expired)."""

    kind = "not_found"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class ConflictError(ExtractorError):
    """
    Raised when a stage precondition is violated.

    Conflicts are safe to retry: they never change job state.
    `code` is a short machine-readable reason.
    """

    kind = "conflict"

    def __init__(self, message: str, code: str = "conflict"):
        self.code = code
        super().__init__(message)


class InvalidStateTransitionError(ConflictError):
    """Raised when attempting an illegal stage transition."""

    def __init__(self, stage: str, current_state: str, target_state: str):
        self.stage = stage
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid {stage} state transition: "
            f"{current_state} -> {target_state}",
            code="invalid_transition",
        )
