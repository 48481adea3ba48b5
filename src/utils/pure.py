from datetime import datetime
from typing import List, Literal, Optional


def format_price(amount: int) -> str:
    """Chilean peso style: 1234567 -> $1.234.567"""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(int(amount)):,}".replace(",", ".")


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%d-%m-%Y %H:%M")


def _cell(value) -> str:
    # a pipe would end the cell early
    return str(value).replace("|", "\\|").replace("\n", " ")


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of values, rendered with str().
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all left ('l').

    Returns:
        str: Markdown formatted table, empty when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [_cell(h) for h in headers]
    rows = [[_cell(v) for v in row] for row in rows]

    num_cols = len(headers)
    if aligns is None:
        aligns = ["l"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    header_line = "| " + " | ".join(headers) + " |"
    align_line = "| " + " | ".join(align_map[a] for a in aligns) + " |"
    row_lines = ["| " + " | ".join(row) + " |" for row in rows]

    return "\n".join([header_line, align_line, *row_lines])
