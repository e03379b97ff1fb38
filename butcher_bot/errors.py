"""
Error taxonomy for the ordering core.

Routes translate these into HTTP responses; the conversation engine turns
commit failures into a retryable message for the customer. Upstream failures
on the text path never leave the interpreter as exceptions.
"""


class ButcherBotError(Exception):
    """Base class for domain errors."""


class UpstreamUnavailableError(ButcherBotError):
    """The conversational AI capability is unreachable or not configured."""


class TranscriptionError(ButcherBotError):
    """Audio transcription failed or ran past its deadline."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class AdmissionTimeout(ButcherBotError):
    """No admission slot became free before the queue timeout."""

    def __init__(self, gate_name: str, waited_seconds: float):
        super().__init__(
            f"Admission gate '{gate_name}' busy; gave up after {waited_seconds:.1f}s"
        )
        self.gate_name = gate_name
        self.waited_seconds = waited_seconds


class ValidationError(ButcherBotError):
    """Input rejected before any upstream call or write was attempted."""


class AudioValidationError(ValidationError):
    """Audio payload is empty, oversized or of an unsupported type.

    ``kind`` is one of ``"too_large"``, ``"unsupported_type"`` or ``"empty"``.
    """

    def __init__(self, message: str, kind: str):
        super().__init__(message)
        self.kind = kind


class CartValidationError(ValidationError):
    """Cart is empty, too large, or has lines that cannot be committed."""


class OrderCommitError(ButcherBotError):
    """The order could not be recorded. Never swallowed silently."""


class OrderNumberConflictError(OrderCommitError):
    """Every generated order number collided with an existing row."""

    def __init__(self, attempts: int):
        super().__init__(f"Order number still colliding after {attempts} attempts")
        self.attempts = attempts


class SessionConflictError(ButcherBotError):
    """A concurrent update to the same chat session won the compare-and-swap."""

    def __init__(self, session_id: str, expected_version: int):
        super().__init__(
            f"Session {session_id} changed concurrently (expected version {expected_version})"
        )
        self.session_id = session_id
        self.expected_version = expected_version


class InvalidStatusTransition(ButcherBotError):
    """Staff tried to move an order to a status not reachable from its current one."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move order from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class PickupVerificationError(ButcherBotError):
    """A scanned pickup code does not match a deliverable order."""
