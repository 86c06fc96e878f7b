"""
Error taxonomy for the campaign moderation service.

Every error raised by the lifecycle engine carries the HTTP status it maps to, so the
boundary layer can translate it without knowing the individual error types.
"""


class CampaignError(Exception):
    """Base class for errors surfaced to the HTTP boundary"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CampaignError):
    status_code = 404


class ForbiddenError(CampaignError):
    status_code = 403


class ValidationError(CampaignError):
    status_code = 400


class InvalidTransitionError(CampaignError):
    """State machine precondition violated"""
    status_code = 400


class AlreadyApprovedError(InvalidTransitionError):
    pass


class NotApprovedError(InvalidTransitionError):
    pass


class AlreadyDeployedError(InvalidTransitionError):
    pass


class CannotEditDeployedError(InvalidTransitionError):
    pass


class NotEditableError(InvalidTransitionError):
    pass


class ReviewNotPendingError(InvalidTransitionError):
    """An edit or update record has already been reviewed"""
    pass


class ServiceUnavailableError(CampaignError):
    status_code = 503


class DependencyUnavailableError(Exception):
    """
    The external AI completion service failed (network, timeout, non-2xx, malformed payload).

    Only raised inside the analysis pipeline, which always absorbs it.
    """

    def __init__(self, reason: str, detail: str = ""):
        super().__init__(f"{reason}: {detail}" if detail else reason)
        self.reason = reason
        self.detail = detail
