"""Spreadsheet export layer."""
from hours_tool.excel.generator import build_report, build_workbook, export_report, export_report_bytes

__all__ = ["build_report", "build_workbook", "export_report", "export_report_bytes"]
