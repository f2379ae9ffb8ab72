# messaging_client/exceptions.py

NOT_AUTHENTICATED = "Not authenticated"
SEND_TIMEOUT_MESSAGE = "Request timed out. Please check your connection and try again."


class MessagingError(Exception):
    """Base error raised by messaging actions that report failures to the caller."""


class NotAuthenticatedError(MessagingError):
    def __init__(self, message: str = NOT_AUTHENTICATED):
        super().__init__(message)


class SendMessageError(MessagingError):
    pass


class SendTimeoutError(SendMessageError):
    def __init__(self, message: str = SEND_TIMEOUT_MESSAGE):
        super().__init__(message)
