"""Error types for the memory pipeline."""


class MemoryPipelineError(RuntimeError):
    """Base class for memory pipeline failures."""


class MissingStateError(MemoryPipelineError):
    """Raised when a stage requires the memory snapshot and none was supplied.

    Fatal to the turn: the caller sees the error and the previously persisted
    snapshot stays as it was.
    """

    def __init__(self, stage: str):
        super().__init__(f"{stage}: missing memory snapshot")
        self.stage = stage


class DegradedMergeWarning(UserWarning):
    """Marks a merge that ran without a recognizable snapshot.

    Never raised. It is attached to the warning log record as ``category``
    when the merge substitutes an empty snapshot.
    """
