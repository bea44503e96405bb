"""Out-of-band storage for reports too large (or too remote) to inline."""

from .offloader import CONTENT_TYPE, BlobOffloader, ReportStore, report_key

__all__ = ["CONTENT_TYPE", "BlobOffloader", "ReportStore", "report_key"]
