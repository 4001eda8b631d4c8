"""Exceptions raised by the import pipeline."""


class ImportConfigurationError(ValueError):
    """The source or destination cannot be used; raised before any row is read."""


class ImportCancelled(Exception):
    """The cancel signal was observed; the import's transaction has been rolled back."""

    def __init__(self, rows_read: int = 0):
        super().__init__(f"Import cancelled after {rows_read} rows read")
        self.rows_read = rows_read


def innermost_message(exc: BaseException) -> str:
    """Message of the deepest exception in a chain of wrapped errors.

    Follows explicit causes (``raise ... from``) first, then implicit context
    unless it was suppressed.
    """
    seen = {id(exc)}
    while True:
        inner = exc.__cause__
        if inner is None and not exc.__suppress_context__:
            inner = exc.__context__
        if inner is None or id(inner) in seen:
            break
        seen.add(id(inner))
        exc = inner
    return str(exc).strip() or type(exc).__name__
