"""Common local activity options exceptions."""


class LocalActivityError(Exception):
    """Base for all local activity options exceptions."""

    @property
    def cause(self) -> BaseException | None:
        """Cause of the exception.

        This is the same as ``Exception.__cause__``.
        """
        return self.__cause__


class InvalidArgumentError(LocalActivityError, ValueError):
    """Raised when an option value or combination of values is not allowed.

    This is a :py:class:`ValueError` so callers validating input the usual
    way keep catching it.
    """

    def __init__(self, message: str, *, argument: str | None = None) -> None:
        """Initialize an invalid argument error."""
        super().__init__(message)
        self._message = message
        self._argument = argument

    @property
    def message(self) -> str:
        """Message."""
        return self._message

    @property
    def argument(self) -> str | None:
        """Name of the offending argument, if a single one is at fault."""
        return self._argument
