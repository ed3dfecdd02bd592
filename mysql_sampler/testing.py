import contextlib

from . import exc


class TestBase:
    def assertEqual(self, a, b):
        assert a == b, "%r != %r" % (a, b)

    def assertAlmostEqual(self, a, b, places=7):
        assert round(abs(a - b), places) == 0, "%r != %r" % (a, b)

    def assertIn(self, member, container):
        assert member in container, "%r not in %r" % (member, container)

    def assertNotIn(self, member, container):
        assert member not in container, "%r in %r" % (member, container)

    def assertRaises(self, exc_cls, fn, *arg, **kw):
        try:
            fn(*arg, **kw)
        except exc_cls as err:
            return err
        else:
            assert False, "Callable did not raise an exception"


class FakeHandle:
    """Stands in for :class:`.connection.Handle`.

    ``results`` maps a statement, or a distinctive piece of one, to the rows
    it returns; an exception instance in place of the rows is raised.

    """

    def __init__(self, results):
        self.results = results
        self.statements = []

    def _lookup(self, statement):
        self.statements.append(statement)
        if statement in self.results:
            result = self.results[statement]
        else:
            result = next(
                (
                    result
                    for fragment, result in self.results.items()
                    if fragment in statement
                ),
                [],
            )
        if isinstance(result, BaseException):
            raise result
        return result

    def rows(self, statement):
        return [tuple(row) for row in self._lookup(statement)]

    def mappings(self, statement):
        return [dict(row) for row in self._lookup(statement)]


def query_error(statement="SHOW SOMETHING", message="(1064, 'syntax')"):
    return exc.QueryError(statement, message)


def fake_open_handle(handle, opened=None):
    """Return an ``open_handle`` replacement yielding ``handle``.

    Each call appends the descriptor to ``opened`` if given.

    """

    @contextlib.contextmanager
    def open_handle(descriptor, log=None):
        if opened is not None:
            opened.append(descriptor)
        yield handle

    return open_handle
