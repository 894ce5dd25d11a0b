from __future__ import annotations

from io import BytesIO
from typing import Dict, Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

EMPLOYEE_HEADERS = ["Employee ID", "Employee Name", "Designation", "Location"]
PRODUCT_HEADERS = ["Product Code", "Product Name", "Supported Sizes", "Category", "Vendor"]
BULK_ORDER_HEADERS = ["Employee ID", "Product Code", "Size", "Quantity", "Shipping Location"]


def _header(ws, headers) -> None:
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for col in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 22


def build_bulk_order_template(
    employees: Iterable,
    products: Iterable,
    location_names: Dict[int, str],
) -> bytes:
    wb = Workbook()

    ws = wb.active
    ws.title = "Employee Reference"
    _header(ws, EMPLOYEE_HEADERS)
    for e in employees:
        ws.append([
            getattr(e, "employee_code", ""),
            getattr(e, "full_name", ""),
            getattr(e, "designation", "") or "",
            location_names.get(getattr(e, "location_id", None), ""),
        ])

    ws = wb.create_sheet("Product Reference")
    _header(ws, PRODUCT_HEADERS)
    for p in products:
        ws.append([
            getattr(p, "sku", ""),
            getattr(p, "name", ""),
            ", ".join(getattr(p, "size_list", []) or []),
            getattr(p, "category", ""),
            getattr(getattr(p, "vendor", None), "name", "") or "",
        ])

    ws = wb.create_sheet("Bulk Orders")
    _header(ws, BULK_ORDER_HEADERS)

    fp = BytesIO()
    wb.save(fp)
    return fp.getvalue()
