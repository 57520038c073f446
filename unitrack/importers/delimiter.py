from unitrack.schemas.student_schemas import Delimiter

# Comma is only the fallback: names and titles often contain commas even in
# files separated by something else.
PRIORITY = (Delimiter.SEMICOLON, Delimiter.TAB, Delimiter.PIPE)


class DelimiterSniffer:
    """Picks the field separator of an import file from its first line."""

    def __init__(self, priority=PRIORITY, default: Delimiter = Delimiter.COMMA):
        self.priority = tuple(priority)
        self.default = default

    def sniff(self, sample_line: str) -> Delimiter:
        for delimiter in self.priority:
            if delimiter.value in sample_line:
                return delimiter
        return self.default
