from typing import Dict, List, Union

from unitrack.schemas.student_schemas import Delimiter, RejectedRow, StudentRecord
from unitrack.utils.errors import MissingColumnsError

REQUIRED_HEADERS = ("matric_no", "name", "email")
QUOTE_CHARS = "'\""


def clean_token(token: str) -> str:
    """Trim a field and drop the quotes wrapped around it."""
    return token.strip().strip(QUOTE_CHARS).strip()


def strip_line(line: str) -> str:
    return line.replace("\r", "")


class RowNormalizer:
    """Turns delimited lines into validated StudentRecords."""

    def __init__(self, required_headers=REQUIRED_HEADERS):
        self.required_headers = tuple(required_headers)

    def split(self, line: str, delimiter: Delimiter) -> List[str]:
        return [clean_token(value) for value in strip_line(line).split(delimiter.value)]

    def is_blank(self, line: str, delimiter: Delimiter) -> bool:
        """Whitespace-only lines and lines made only of separators carry no data."""
        return not any(self.split(line, delimiter))

    def parse_header(self, line: str, delimiter: Delimiter) -> List[str]:
        return [header.lower() for header in self.split(line, delimiter)]

    def missing_headers(self, headers: List[str]) -> List[str]:
        return [header for header in self.required_headers if header not in headers]

    def validate_headers(self, headers: List[str]) -> None:
        missing = self.missing_headers(headers)
        if missing:
            raise MissingColumnsError(missing, self.required_headers)

    def to_mapping(
        self, line: str, headers: List[str], delimiter: Delimiter
    ) -> Dict[str, str]:
        values = self.split(line, delimiter)
        mapping: Dict[str, str] = {}
        for index, header in enumerate(headers):
            # Short rows get empty trailing fields, extra columns are ignored
            value = values[index] if index < len(values) else ""
            mapping.setdefault(header, value)
        return mapping

    def parse_row(
        self,
        line: str,
        headers: List[str],
        delimiter: Delimiter,
        line_number: int = None,
    ) -> Union[StudentRecord, RejectedRow]:
        raw_line = strip_line(line)
        mapping = self.to_mapping(raw_line, headers, delimiter)

        empty = [field for field in self.required_headers if not mapping.get(field)]
        if empty:
            return RejectedRow(
                raw_line=raw_line,
                reason=f"Missing required fields: {', '.join(empty)}",
                line_number=line_number,
            )

        return StudentRecord(
            matric_no=mapping["matric_no"].upper(),
            name=mapping["name"],
            email=mapping["email"].lower(),
        )
