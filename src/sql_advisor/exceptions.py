"""Error taxonomy shared by every analysis stage."""


class AdvisorError(Exception):
    """Base class for all SQL Advisor errors."""


class InvalidInputError(AdvisorError, ValueError):
    """Raised before any I/O when a caller passes unusable input."""


class FatalExecutionError(AdvisorError):
    """A mandatory stage failed and the analysis cannot continue."""

    def __init__(self, stage: str, cause: BaseException | None = None):
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{stage} failed{detail}")


class TransientCollectionError(AdvisorError):
    """A best-effort collection step failed; callers fall back to defaults."""

    def __init__(self, stage: str, cause: BaseException | None = None):
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{stage} unavailable{detail}")
