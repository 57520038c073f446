from .delimiter import DelimiterSniffer
from .row_normalizer import REQUIRED_HEADERS, RowNormalizer
from .pipeline import BulkImportPipeline

__all__ = [
    "DelimiterSniffer",
    "RowNormalizer",
    "REQUIRED_HEADERS",
    "BulkImportPipeline",
]
