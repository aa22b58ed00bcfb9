"""Profile Batch - spreadsheet-driven batch profile extraction service."""

__version__ = "0.1.0"
