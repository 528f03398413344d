"""
Export tableur des rapports de mouvements.

Pure mise en forme : les lignes sont déjà calculées par les views,
ce module ne fait que les écrire dans un classeur .xlsx.
"""

from __future__ import annotations

from datetime import datetime
from typing import IO, Iterable, Union
from pathlib import Path

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

COLUMNS = (
    "DATE",
    "Direction",
    "Invoice No.",
    "Item",
    "Type",
    "Quantity",
    "Supplier",
    "Price",
)


def _row_values(row: dict) -> list:
    price = row.get("price")
    return [
        datetime.fromtimestamp(row["at"] / 1000),
        "Stock In" if row.get("direction") == "in" else "Stock Out",
        row.get("invoice") or None,
        row["item"],
        row["type"],
        row["qty"],
        row.get("source") or None,
        price if isinstance(price, (int, float)) else None,
    ]


def export_report(
    rows: Iterable[dict],
    destination: Union[str, Path, IO[bytes]],
    title: str = "Stock Report",
) -> None:
    """Écrit `rows` dans une feuille unique nommée `title`."""
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = title[:31]
    worksheet.append(list(COLUMNS))

    for row in rows:
        worksheet.append(_row_values(row))

    for index, header in enumerate(COLUMNS, start=1):
        letter = get_column_letter(index)
        worksheet.column_dimensions[letter].width = max(12, len(header) + 2)
    for cell in worksheet["A"][1:]:
        cell.number_format = "yyyy-mm-dd hh:mm"
    for cell in worksheet["H"][1:]:
        cell.number_format = "0.00"

    workbook.save(destination)
