"""Exception hierarchy. Every error carries a ``kind`` a caller can branch on."""


class SpeechStitcherError(Exception):
    kind = "error"

    def __init__(self, message: str = "", kind: str | None = None):
        if kind is not None:
            self.kind = kind
        super().__init__(message or self.kind.replace("_", " "))


class EmptyTextError(SpeechStitcherError):
    """Segmentation produced no chunks; reject before a job starts."""

    kind = "empty_text"


class SynthesisError(SpeechStitcherError):
    """A backend call failed. Terminal for the job that issued it."""

    kind = "synthesis_failed"

    def __init__(self, message: str = "", kind: str | None = None, cause: Exception | None = None,
                 status_code: int | None = None):
        super().__init__(message, kind)
        self.cause = cause
        self.status_code = status_code


class WavParseError(SpeechStitcherError):
    kind = "invalid_header"

    def __init__(self, kind: str, position: int | None = None):
        message = kind.replace("_", " ")
        if position is not None:
            message = f"{message} (input {position})"
        super().__init__(message, kind)
        self.position = position


class StitchError(SpeechStitcherError):
    kind = "empty_list"


class IncompatibleFormatError(SpeechStitcherError):
    """Two inputs disagree on format tag, channels, sample rate or bit depth.

    ``position`` counts among the inputs after the first (0-based);
    ``index`` is the offending input's place in the full list.
    """

    kind = "incompatible_format"

    def __init__(self, position: int):
        super().__init__(f"incompatible format at position {position}")
        self.position = position
        self.index = position + 1


class JobNotFoundError(SpeechStitcherError):
    kind = "job_not_found"

    def __init__(self, job_id: str):
        super().__init__(f"job not found: {job_id}")
        self.job_id = job_id


class ResultNotReadyError(SpeechStitcherError):
    kind = "not_completed"

    def __init__(self, status: str):
        super().__init__(f"job not yet completed (status: {status})")
        self.status = status


class GPUError(SpeechStitcherError):
    kind = "nvidia_smi_failed"


class SettingsError(SpeechStitcherError):
    kind = "invalid_setting"
