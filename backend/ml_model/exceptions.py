"""
Error taxonomy for the phishing scan pipeline.

Every fatal problem is raised as a PhishingScanError subclass. The stage is
filled in by the orchestrator (classifier.py) so the caller always knows
which step of the pipeline gave up.
"""

from typing import Optional


class PhishingScanError(Exception):
    """Base error for everything the scan pipeline can raise."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.stage = stage
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        msg = f"{self.stage}: {self.message}" if self.stage else self.message
        if self.original_error:
            msg += f" [Original: {type(self.original_error).__name__}: {self.original_error}]"
        return msg


class ArtifactValidationError(PhishingScanError):
    """A fitted-model artifact is missing, unreadable or has a malformed field."""

    def __init__(self, artifact: str, field: Optional[str], message: str, **kwargs):
        self.artifact = artifact
        self.field = field
        location = f"{artifact}.{field}" if field else artifact
        super().__init__(f"{location}: {message}", **kwargs)


class InitializationError(PhishingScanError):
    """Artifacts never became ready; scanning is disabled until a reload succeeds."""
    pass


class ExtractionError(PhishingScanError):
    """No usable message content (subject and body text both empty)."""
    pass


class LengthMismatchError(PhishingScanError):
    """Handcrafted vector does not match the layout the model was trained on."""
    pass


class WeightsNotReadyError(PhishingScanError):
    """Term weighting was requested before artifacts were validated."""
    pass


class InferenceError(PhishingScanError):
    """The inference engine failed to produce a label."""
    pass
