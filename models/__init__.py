"""Pydantic models for rowdb records and statements."""

from models.row import EMAIL_MAX_BYTES, ROW_SIZE, USERNAME_MAX_BYTES, Row
from models.statement import MetaCommandResult, Statement, StatementType

__all__ = [
    "Row",
    "ROW_SIZE",
    "USERNAME_MAX_BYTES",
    "EMAIL_MAX_BYTES",
    "Statement",
    "StatementType",
    "MetaCommandResult",
]
