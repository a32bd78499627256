class FatalSyncError(RuntimeError):
    """Raised when a sync run cannot make further progress and must abort."""


class ClubAuthError(FatalSyncError):
    """Raised when the club-level Strava credential cannot be refreshed."""


class RowStoreError(FatalSyncError):
    """Raised when the spreadsheet cannot be opened or read."""


class SchemaError(FatalSyncError):
    """Raised when a required table or column is missing from the spreadsheet."""
