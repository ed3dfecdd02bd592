from __future__ import annotations

import contextlib
import logging
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Tuple
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.pool import NullPool

from . import exc

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection


log = logging.getLogger(__name__)

DRIVERNAME = "mysql+pymysql"
DEFAULT_CONNECT_TIMEOUT = 10


class ConnectionDescriptor:
    """Everything needed to open a session on one MySQL server."""

    __slots__ = (
        "hostname",
        "port",
        "username",
        "password",
        "database",
        "old_passwords",
        "connect_timeout",
    )

    hostname: str
    port: int
    username: str | None
    password: str | None
    database: str | None
    old_passwords: bool
    connect_timeout: int

    def __init__(
        self,
        hostname: str = "localhost",
        port: int = 3306,
        username: str | None = None,
        password: str | None = None,
        database: str | None = None,
        old_passwords: bool = False,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
    ):
        self.hostname = hostname
        self.port = int(port)
        self.username = username
        self.password = password
        self.database = database or None
        self.old_passwords = old_passwords
        self.connect_timeout = connect_timeout

    @property
    def url(self) -> URL:
        return URL.create(
            DRIVERNAME,
            username=self.username,
            password=self.password,
            host=self.hostname,
            port=self.port,
            database=self.database,
        )

    @property
    def connect_args(self) -> Dict[str, Any]:
        return {"connect_timeout": self.connect_timeout}

    @property
    def dsn(self) -> str:
        """Diagnostic rendering of the descriptor, password masked."""

        params = "?allowOldPasswords=true" if self.old_passwords else ""
        return "%s:***@tcp(%s:%d)/%s%s" % (
            self.username or "",
            self.hostname,
            self.port,
            self.database or "",
            params,
        )

    def __repr__(self):
        return "mysql_sampler.ConnectionDescriptor(%s)" % self.dsn


class Handle:
    """Runs read-only statements on an open session and returns rows."""

    def __init__(self, connection: Connection, log: logging.Logger = log):
        self.connection = connection
        self.log = log

    def _execute(self, statement: str):
        self.log.debug("execute: %s", statement)
        try:
            return self.connection.execute(text(statement))
        except sa_exc.DBAPIError as err:
            raise exc.QueryError(statement, str(err.orig)) from err

    def rows(self, statement: str) -> List[Tuple[Any, ...]]:
        return [tuple(row) for row in self._execute(statement)]

    def mappings(self, statement: str) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._execute(statement).mappings()]


@contextlib.contextmanager
def open_handle(
    descriptor: ConnectionDescriptor, log: logging.Logger = log
) -> Iterator[Handle]:
    """Connect to the server described and yield a :class:`.Handle`.

    The connection is closed and the engine disposed when the block exits,
    whether it exits normally or with an exception.  There are no retries
    here; a failed connect raises :class:`.exc.ConnectionError` right away.

    """
    if descriptor.old_passwords:
        log.warning(
            "old_passwords is set; PyMySQL authenticates with the plugin "
            "the server advertises and has no pre-4.1 password hashing"
        )

    engine = create_engine(
        descriptor.url,
        poolclass=NullPool,
        connect_args=descriptor.connect_args,
    )
    try:
        log.debug("connecting to %s", descriptor.dsn)
        try:
            connection = engine.connect()
        except sa_exc.DBAPIError as err:
            raise exc.ConnectionError(
                "could not connect to %s: %s" % (descriptor.dsn, err.orig)
            ) from err

        try:
            yield Handle(connection, log)
        finally:
            connection.close()
    finally:
        engine.dispose()
