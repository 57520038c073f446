"""
Bulk student import: sniff -> header -> rows -> confirm -> submit.

`run` parses and validates an import file and stops. Nothing is uploaded until
the caller has shown the outcome to the user and calls `submit` with the
accepted records.
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from unitrack.importers.delimiter import DelimiterSniffer
from unitrack.importers.row_normalizer import RowNormalizer
from unitrack.schemas.student_schemas import (
    ImportOutcome,
    RejectedRow,
    StudentRecord,
    SubmitReport,
)
from unitrack.utils.errors import ValidationError
from unitrack.utils.logging import get_logger

logger = get_logger()

SubmitFn = Callable[[List[Dict[str, Any]]], Awaitable[Dict[str, Any]]]
ConfirmFn = Callable[[ImportOutcome], Union[bool, Awaitable[bool]]]


class BulkImportPipeline:
    def __init__(
        self,
        sniffer: Optional[DelimiterSniffer] = None,
        normalizer: Optional[RowNormalizer] = None,
    ):
        self.sniffer = sniffer or DelimiterSniffer()
        self.normalizer = normalizer or RowNormalizer()

    def run(self, raw_text: str) -> ImportOutcome:
        """
        Parse an import file into accepted and rejected rows.

        Raises:
            ValidationError: the file has no data rows (CSV_EMPTY), lacks a
                required column (CSV_MISSING_COLUMNS) or has no acceptable
                row (CSV_NO_VALID_STUDENTS).
        """
        lines = [
            (number, line)
            for number, line in enumerate(raw_text.split("\n"), start=1)
            if line.strip()
        ]
        if len(lines) < 2:
            raise ValidationError("CSV file is empty or invalid", "CSV_EMPTY")

        _, header_line = lines[0]
        delimiter = self.sniffer.sniff(header_line)
        headers = self.normalizer.parse_header(header_line, delimiter)
        self.normalizer.validate_headers(headers)

        valid_records: List[StudentRecord] = []
        rejected_rows: List[RejectedRow] = []
        seen: Dict[str, int] = {}
        total_rows = 0

        for number, line in lines[1:]:
            if self.normalizer.is_blank(line, delimiter):
                continue
            total_rows += 1

            parsed = self.normalizer.parse_row(line, headers, delimiter, number)
            if isinstance(parsed, RejectedRow):
                rejected_rows.append(parsed)
                continue

            first_line = seen.get(parsed.matric_no)
            if first_line is not None:
                rejected_rows.append(
                    RejectedRow(
                        raw_line=line.replace("\r", ""),
                        reason=f"Duplicate matric number {parsed.matric_no} (first seen on line {first_line})",
                        line_number=number,
                    )
                )
                continue

            seen[parsed.matric_no] = number
            valid_records.append(parsed)

        if not valid_records:
            raise ValidationError(
                "No valid students found in CSV file", "CSV_NO_VALID_STUDENTS"
            )

        logger.info(
            f"Parsed import file: {total_rows} rows, {len(valid_records)} valid, "
            f"{len(rejected_rows)} rejected (delimiter {delimiter.name.lower()})"
        )

        return ImportOutcome(
            total_rows_parsed=total_rows,
            valid_records=valid_records,
            rejected_rows=rejected_rows,
            delimiter=delimiter,
            headers=headers,
        )

    async def submit(
        self,
        records: Sequence[StudentRecord],
        submit_fn: SubmitFn,
        level: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> SubmitReport:
        """
        Upload confirmed records through `submit_fn`.

        Each record gets the caller's level (and any extra context) appended.
        Whatever the server reports, partial failures included, is returned
        untouched; transport and HTTP errors propagate.
        """
        if not records:
            raise ValidationError("No students to upload", "CSV_NO_VALID_STUDENTS")

        payload = []
        for record in records:
            item = record.to_payload(level)
            if context:
                item.update(context)
            payload.append(item)

        response = await submit_fn(payload)
        return SubmitReport(submitted=len(payload), response=response or {})

    async def import_and_submit(
        self,
        raw_text: str,
        confirm: ConfirmFn,
        submit_fn: SubmitFn,
        level: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[SubmitReport]:
        """Full flow with the confirmation pause. Returns None when the user declines."""
        outcome = self.run(raw_text)

        decision = confirm(outcome)
        if inspect.isawaitable(decision):
            decision = await decision
        if not decision:
            logger.info("Bulk import cancelled at confirmation")
            return None

        return await self.submit(outcome.valid_records, submit_fn, level, context)
