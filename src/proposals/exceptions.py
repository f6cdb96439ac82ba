"""Errors raised while accepting a proposal.

Each error carries the HTTP status and the customer-facing message the
public endpoints answer with.
"""


class ProposalError(Exception):
    status_code = 400
    default_message = "Invalid request"

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors or {}
        super().__init__(self.message)


class ProposalNotFound(ProposalError):
    status_code = 404
    default_message = "Invalid proposal token"


class ProposalAlreadyAccepted(ProposalError):
    status_code = 409
    default_message = "This proposal has already been signed"


class ProposalExpired(ProposalError):
    status_code = 410
    default_message = "This proposal has expired"


class ProposalUnavailable(ProposalError):
    status_code = 410
    default_message = "This proposal is no longer available"


class InvalidSubmission(ProposalError):
    status_code = 400
    default_message = "Invalid signature submission"


class AcceptanceFailed(ProposalError):
    status_code = 500
    default_message = "Failed to record signature. Please try again."
