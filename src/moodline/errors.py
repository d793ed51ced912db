"""Exception hierarchy for moodline.

Every error raised by the package derives from MoodlineError so callers can
catch the whole family at the application boundary.
"""


class MoodlineError(Exception):
    """Base class for all moodline errors."""


class ChatTransportError(MoodlineError):
    """The chat endpoint could not be reached or answered with a failure.

    Attributes:
        status_code: HTTP status returned by the endpoint, None for network errors
        user_message: Short text that is safe to show to the user
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.user_message = user_message or message


class ReplyInProgressError(MoodlineError):
    """A new message was sent while the previous reply is still streaming."""


class AccumulatorClosedError(MoodlineError):
    """Text was appended to an assistant message that is already finalized."""


class StoreNotConnectedError(MoodlineError):
    """A store operation was attempted before connect()."""
