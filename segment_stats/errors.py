"""Errors raised by the segment queries.

Each error carries the HTTP status it is reported with; `main` renders all of
them as `{"success": false, "message": ...}`.
"""


class SegmentStatsError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidIdentifierError(SegmentStatsError):
    status_code = 400


class NotFoundError(SegmentStatsError):
    status_code = 404


class QueryExecutionError(SegmentStatsError):
    """The database rejected or failed a query."""
