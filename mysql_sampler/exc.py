"""Exception classes raised by mysql_sampler.

Names follow the failure taxonomy of one sampling run; the classes that
shadow builtins are meant to be referenced through the module, e.g.
``exc.ConnectionError``, the same way ``sqlalchemy.exc`` is used.

"""


class SamplerError(Exception):
    """Base for all mysql_sampler errors."""


class ConnectionError(SamplerError):
    """The server could not be reached or refused the credentials."""


class QueryError(SamplerError):
    """A status / variables statement failed on this server."""

    def __init__(self, statement, message):
        self.statement = statement
        super().__init__(f"{message} [statement: {statement}]")


class StoreError(SamplerError):
    """The sample cache could not be read or written."""


class PublishError(SamplerError):
    """The payload could not be written for the agent."""
