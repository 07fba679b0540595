"""Raw record normalization layer."""
from hours_tool.parsers.records import normalize_record, normalize_records, parse_decimal

__all__ = ["normalize_record", "normalize_records", "parse_decimal"]
