"""Formula text for the hours report.

One function per formula shape. Each returns the formula with its leading
``=`` so it can be written straight into an openpyxl cell, and each can be
checked against fixed row numbers without building a workbook.

Columns of the worker block: B company, C hours, D rate, E amount, and a
hidden F holding the company's slot in the summary table (data rows only).
"""

from __future__ import annotations

HOURS_COL = "C"
RATE_COL = "D"
AMOUNT_COL = "E"
COMPANY_KEY_COL = "F"

TOTAL_LABEL = "TOTAL"


def cell_range(column: str, start_row: int, end_row: int) -> str:
    return f"{column}{start_row}:{column}{end_row}"


def absolute_range(column: str, start_row: int, end_row: int) -> str:
    return f"${column}${start_row}:${column}${end_row}"


def _with_rate(value_col: str, start_row: int, end_row: int) -> str:
    return (
        f"SUMIFS({cell_range(value_col, start_row, end_row)},"
        f'{cell_range(RATE_COL, start_row, end_row)},"<>")'
    )


def row_amount(row: int) -> str:
    """Hours x rate of one data row; blank when either is missing."""
    return f'=IF(OR({HOURS_COL}{row}="",{RATE_COL}{row}=""),"",{HOURS_COL}{row}*{RATE_COL}{row})'


def worker_total_hours(start_row: int, end_row: int) -> str:
    return f"=SUM({cell_range(HOURS_COL, start_row, end_row)})"


def worker_weighted_rate(start_row: int, end_row: int) -> str:
    """Amount with a known rate divided by the hours that had a rate."""
    hours = _with_rate(HOURS_COL, start_row, end_row)
    amount = _with_rate(AMOUNT_COL, start_row, end_row)
    return f'=IF({hours}=0,"",ROUND({amount}/{hours},2))'


def worker_total_amount(start_row: int, end_row: int) -> str:
    amount = _with_rate(AMOUNT_COL, start_row, end_row)
    return f'=IF({amount}=0,"",{amount})'


def company_amount(slot: int, start_row: int, end_row: int) -> str:
    """Amount billed to one company across the whole worker block.

    Data rows carry their company's table slot in the hidden key column;
    TOTAL and separator rows leave it blank. Matching on a number keeps
    company names out of the criteria, where ``*``, ``?``, ``~`` and
    leading operators would be read as patterns.
    """
    expr = (
        f"SUMIFS({absolute_range(AMOUNT_COL, start_row, end_row)},"
        f"{absolute_range(COMPANY_KEY_COL, start_row, end_row)},{slot},"
        f'{absolute_range(RATE_COL, start_row, end_row)},"<>")'
    )
    return f'=IF({expr}=0,"",{expr})'


def grand_total_amount(start_row: int, end_row: int) -> str:
    """Amount with a known rate across every data row of the block."""
    expr = (
        f"SUMIFS({absolute_range(AMOUNT_COL, start_row, end_row)},"
        f'{absolute_range(COMPANY_KEY_COL, start_row, end_row)},"<>",'
        f'{absolute_range(RATE_COL, start_row, end_row)},"<>")'
    )
    return f'=IF({expr}=0,"",{expr})'


def column_sum(column: str, start_row: int, end_row: int) -> str:
    return f"=SUM({cell_range(column, start_row, end_row)})"
