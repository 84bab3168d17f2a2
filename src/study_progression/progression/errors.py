"""Progression error taxonomy. All errors are recoverable by the caller."""


class ProgressionError(Exception):
    """Base class for rejected progression mutations."""


class InvalidClaim(ProgressionError):
    """Badge is not waiting in the unclaimed pool."""

    def __init__(self, key: str):
        super().__init__(f"Badge {key!r} is not available to claim")
        self.key = key


class InvalidEquip(ProgressionError):
    """Badge has not been claimed, so it cannot be equipped."""

    def __init__(self, key: str):
        super().__init__(f"Badge {key!r} has not been claimed")
        self.key = key


class AlreadyClaimedToday(ProgressionError):
    def __init__(self, kind: str):
        super().__init__(f"Spin '{kind}' was already claimed today")
        self.kind = kind


class MissionNotComplete(ProgressionError):
    def __init__(self, kind: str):
        super().__init__(f"Spin '{kind}' is locked until its mission is complete")
        self.kind = kind


class InvalidProfileState(ProgressionError):
    """Profile violates an invariant that cannot be recomputed."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
