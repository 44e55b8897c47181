class PlanValidationError(ValueError):
    """Raised when a plan cannot be stored, e.g. its title is blank."""


class SnapshotImportError(ValueError):
    """Raised when backup data cannot be parsed or does not match the format."""


class BackupCancelled(RuntimeError):
    """Raised when the user dismisses the file chooser."""
