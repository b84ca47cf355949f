"""
Result aggregation for member imports.

ImportReportBuilder only appends: it never validates or reorders. Every
record lands in exactly one of errors / duplicates / successful, which keeps
successful + len(errors) + len(duplicates) == total_processed.
"""

from dataclasses import dataclass

from cohort.models.member_import import (
    DetailStatus,
    ImportDetail,
    ImportDuplicate,
    ImportErrorEntry,
    ImportReport,
)

MISSING_EMAIL = "N/A"


@dataclass
class RecordFailure:
    """Terminal error outcome of one pipeline stage for one record."""
    error: str


class ImportReportBuilder:
    """Accumulates one outcome per record into an ImportReport."""

    def __init__(self) -> None:
        self._report = ImportReport()

    def add_error(self, line: int, email: str, error: str) -> None:
        self._report.total_processed += 1
        self._report.errors.append(
            ImportErrorEntry(line=line, email=email or MISSING_EMAIL, error=error)
        )

    def add_duplicate(
        self,
        line: int,
        email: str,
        status: DetailStatus,
        first_name: str = "",
        last_name: str = "",
    ) -> None:
        self._report.total_processed += 1
        self._report.skipped += 1
        self._report.duplicates.append(ImportDuplicate(line=line, email=email))
        self._report.details.append(
            ImportDetail(
                line=line,
                email=email,
                status=status,
                first_name=first_name,
                last_name=last_name,
            )
        )

    def add_invited(
        self,
        line: int,
        email: str,
        email_sent: bool,
        first_name: str = "",
        last_name: str = "",
    ) -> None:
        self._report.total_processed += 1
        self._report.successful += 1
        self._report.invited += 1
        self._report.details.append(
            ImportDetail(
                line=line,
                email=email,
                status=DetailStatus.INVITED if email_sent else DetailStatus.INVITED_NO_EMAIL,
                first_name=first_name,
                last_name=last_name,
            )
        )

    def build(self) -> ImportReport:
        return self._report
