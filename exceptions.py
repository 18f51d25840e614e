"""Error taxonomy for rowdb.

Prepare, meta-command and execution errors are recoverable: the REPL prints
them and keeps reading. FatalError subclasses mean the storage layer cannot
continue; only the process entry point decides to terminate on them.
"""


class RowDBError(Exception):
    """Base class for every error raised by rowdb."""


class PrepareError(RowDBError):
    """A text line could not be turned into a statement."""


class PrepareSyntaxError(PrepareError):
    pass


class StringTooLong(PrepareError):
    pass


class UnrecognizedStatement(PrepareError):
    pass


class MetaCommandError(RowDBError):
    pass


class UnrecognizedMetaCommand(MetaCommandError):
    pass


class ExecutionError(RowDBError):
    """A prepared statement failed against the table."""


class TableFull(ExecutionError):
    pass


class FlushError(ExecutionError):
    """Writing a cached page back to the file failed."""


class FatalError(RowDBError):
    """Unrecoverable storage condition. Callers must not retry."""


class PageOutOfBounds(FatalError):
    pass


class DatabaseOpenError(FatalError):
    pass
