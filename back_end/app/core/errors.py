# app/core/errors.py
"""
Error taxonomy for the incident core.

Every error carries the HTTP status the API layer renders it with. None of
them are retried inside the core; a StoreError is the only one a caller may
reasonably retry, and that policy belongs to the caller.
"""


class SafetyCoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(SafetyCoreError):
    """Out-of-range coordinates, unknown incident type/vote kind/status."""
    status_code = 400


class IncidentNotFoundError(SafetyCoreError):
    status_code = 404

    def __init__(self, incident_id: int):
        super().__init__(f"Incident {incident_id} not found")
        self.incident_id = incident_id


class NotReporterError(SafetyCoreError):
    """Status updates are reserved to the incident's original reporter."""
    status_code = 403


class StoreError(SafetyCoreError):
    status_code = 500
