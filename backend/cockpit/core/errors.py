class CockpitError(Exception):
    """Base for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CockpitError):
    """Input rejected before anything was written."""

    status_code = 400


class NotFoundError(CockpitError):
    """Entity missing or not owned by the caller's tenant/user."""

    status_code = 404
