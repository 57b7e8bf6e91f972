"""Domain models for the roster ingestion pipeline.

Grid and image models are produced by the workbook loader, ColumnMap by the
header resolver, RosterRow by the row normalizer, and the outcome/summary
models by the orchestrator.
"""

from .column_map import ColumnMap
from .error_record import ErrorRecord
from .extracted_image import ExtractedImage, ImageSource
from .grid import BLANK, Blank, CellValue, Number, RawGrid, Text
from .match_trace import AssociationResult, MatchStrategy, MatchTrace
from .outcome import Created, Failed, IngestionOutcome, IngestionSummary, IssuedCredential, Skipped
from .roster_row import RosterRow
from .student import NewStudent, StudentRecord

__all__ = [
    # Workbook models
    "BLANK",
    "Blank",
    "CellValue",
    "Number",
    "RawGrid",
    "Text",
    "ExtractedImage",
    "ImageSource",
    # Pipeline models
    "ColumnMap",
    "RosterRow",
    "AssociationResult",
    "MatchStrategy",
    "MatchTrace",
    # Results
    "Created",
    "Failed",
    "Skipped",
    "IngestionOutcome",
    "IngestionSummary",
    "IssuedCredential",
    "ErrorRecord",
    # Store records
    "NewStudent",
    "StudentRecord",
]
