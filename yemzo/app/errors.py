"""Error taxonomy shared by the order core and the HTTP layer."""


class YemzoError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"success": False, "code": self.code, "message": self.message}


class ValidationError(YemzoError):
    """Missing or malformed input."""
    code = "VALIDATION_ERROR"
    status_code = 400


class DuplicateReview(ValidationError):
    code = "DUPLICATE_REVIEW"
    status_code = 409


class NotFound(YemzoError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidTransition(YemzoError):
    """A lifecycle precondition did not hold; the order was left unchanged."""
    code = "INVALID_TRANSITION"
    status_code = 409


class UpstreamUnavailable(YemzoError):
    """The remote language model failed. Recovered by the heuristic parser."""
    code = "UPSTREAM_UNAVAILABLE"
    status_code = 502


class NotificationFailure(YemzoError):
    """The publish/subscribe transport is unavailable. Logged and swallowed."""
    code = "NOTIFICATION_FAILURE"
    status_code = 503
