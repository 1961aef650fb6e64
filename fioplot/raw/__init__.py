"""Raw layout parsers."""

from fioplot.raw.document import decode_document, extract_json_span
from fioplot.raw.path_parser import ParsedLogPath, parse_log_path

__all__ = [
    "ParsedLogPath",
    "decode_document",
    "extract_json_span",
    "parse_log_path",
]
