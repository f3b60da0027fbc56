"""Per-cell type coercion for spreadsheet rows.

Workbooks are opened with ``data_only=True`` so formula cells already carry
their cached result; openpyxl also converts numeric cells whose number format
is a date format into ``datetime`` values. The helpers here render every cell
as the text the rest of the pipeline compares.
"""

from __future__ import annotations

import datetime as dt
import decimal
import typing as typ

from .dates import format_iso_date, serial_to_iso_date

if typ.TYPE_CHECKING:
    from openpyxl.cell.cell import Cell
    from openpyxl.cell.read_only import EmptyCell, ReadOnlyCell

    type AnyCell = Cell | ReadOnlyCell | EmptyCell


def _format_number(value: float | decimal.Decimal) -> str:
    if value == int(value):
        return str(int(value))
    return str(value)


def coerce_value(value: object, *, is_date: bool = False) -> str:
    """Render a raw cell value as comparison text.

    Parameters
    ----------
    value
        Cell value as returned by openpyxl.
    is_date
        Whether the cell's number format marks it as a date. Only consulted
        for numeric values that openpyxl left unconverted.

    Returns
    -------
    str
        ``"true"``/``"false"`` for booleans, ``YYYY-MM-DD`` for dates, integer
        text for whole numbers, decimal text otherwise, ``""`` for blanks.

    Examples
    --------
    >>> coerce_value(12.0)
    '12'
    >>> coerce_value(True)
    'true'

    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dt.datetime | dt.date):
        return format_iso_date(value)
    if isinstance(value, dt.time | dt.timedelta):
        return str(value)
    if isinstance(value, int | float | decimal.Decimal):
        if is_date:
            return serial_to_iso_date(float(value))
        return _format_number(value)
    return str(value)


def coerce_cell(cell: AnyCell | None) -> str:
    """Render an openpyxl cell as comparison text; missing cells are blank."""
    if cell is None:
        return ""
    return coerce_value(cell.value, is_date=bool(getattr(cell, "is_date", False)))


__all__ = ["coerce_cell", "coerce_value"]
