class BoneyardError(Exception):
    """Base class for errors raised by the Boneyard backend helpers."""


class StatsUpdateError(BoneyardError):
    """Reading a climb's logs or writing its stats failed."""

    def __init__(self, climb_id, cause):
        self.climb_id = climb_id
        self.cause = cause
        super().__init__(f"climb {climb_id}: {cause}")


class ClimbNotFound(BoneyardError):
    """The climb document a log belongs to no longer exists."""

    def __init__(self, climb_id):
        self.climb_id = climb_id
        super().__init__(f"climb {climb_id} does not exist")


class StorageError(BoneyardError):
    pass
