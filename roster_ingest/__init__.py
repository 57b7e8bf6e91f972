"""Bulk roster ingestion for the university election portal.

Reads an uploaded spreadsheet of students (with embedded passport photos),
validates each row and creates student records through a RecordStore,
uploading photos through a BlobStore.
"""

__version__ = "0.1.0"
