"""Domain errors raised by ticketflow services."""


class TicketflowError(Exception):
    """Base class for service errors."""


class ExternalFetchFailure(TicketflowError):
    """The external ticket list could not be fetched; aborts a sync run."""


class PublishFailure(TicketflowError):
    """The task broker rejected or could not receive an envelope."""


class NotFoundError(TicketflowError):
    """A referenced ticket, reply or config key does not exist."""


class InvalidTransitionError(TicketflowError):
    """The workflow state machine rejected an event."""
