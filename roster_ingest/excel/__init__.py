from .errors import FileTooLargeError, IngestionError, MissingColumnsError, WorkbookFormatError
from .headers import HeaderLabels, resolve_columns
from .reader import WorkbookModel, read_workbook

__all__ = [
    "FileTooLargeError",
    "IngestionError",
    "MissingColumnsError",
    "WorkbookFormatError",
    "HeaderLabels",
    "resolve_columns",
    "WorkbookModel",
    "read_workbook",
]
