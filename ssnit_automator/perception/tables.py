"""Table reading for the report, unprocessed and data-entry pages"""

import re

from ssnit_automator.perception.pages import PAGE_DESCRIPTORS, PageKind
from ssnit_automator.reasoning.contribution import parse_amount, parse_count

ER_PATTERN = re.compile(r"^\d{9}$")


def _cell_texts(row):
    cells = row.locator("td")
    return [(cells.nth(i).inner_text() or "").strip() for i in range(cells.count())]


def _find_table(page, selector, header_text=None):
    """First table for selector, optionally the one with a matching header"""
    tables = page.locator(selector)
    if tables.count() == 0:
        return None
    if not header_text:
        return tables.first
    for i in range(tables.count()):
        table = tables.nth(i)
        headers = table.locator("thead th")
        for j in range(headers.count()):
            if header_text.lower() in (headers.nth(j).text_content() or "").lower():
                return table
    return None


def read_report_rows(page):
    """Observation rows of the report table as dicts"""
    descriptor = PAGE_DESCRIPTORS[PageKind.REPORT]
    columns = descriptor["columns"]
    rows = []
    try:
        table = _find_table(page, descriptor["table"])
        if table is None:
            return rows
        body_rows = table.locator("tbody tr")
        for i in range(body_rows.count()):
            row = body_rows.nth(i)
            cells = _cell_texts(row)
            if len(cells) < descriptor["min_cells"]:
                continue
            rows.append({
                "er": cells[columns["er"]],
                "name": cells[columns["name"]],
                "type": cells[columns["type"]].upper(),
                "count": parse_count(cells[columns["count"]]),
                "period": cells[columns["period"]].upper(),
                "amount": parse_amount(cells[columns["amount"]]),
                "self_capture": row.locator(f"td:first-child {descriptor['self_capture_icon']}").count() > 0,
            })
    except Exception as e:
        print(f"  ⚠️ Error reading report table: {e}")
    return rows


def read_employee_rows(page):
    """Employee contribution rows on the data-entry page"""
    descriptor = PAGE_DESCRIPTORS[PageKind.DATA_ENTRY]
    columns = descriptor["employee_columns"]
    rows = []
    try:
        table = _find_table(page, descriptor["employee_table"], descriptor["employee_header"])
        if table is None:
            print("  ⚠️ Employee table not found")
            return rows
        body_rows = table.locator("tbody tr")
        for i in range(body_rows.count()):
            cells = _cell_texts(body_rows.nth(i))
            if len(cells) <= columns["value"]:
                continue
            names = [cells[columns[k]] for k in ("surname", "first_name", "other_names")]
            rows.append({
                "ss_number": cells[columns["ss_number"]],
                "name": " ".join(n for n in names if n),
                "value": parse_amount(cells[columns["value"]].replace(",", "")),
            })
    except Exception as e:
        print(f"  ⚠️ Error reading employee table: {e}")
    return rows


def read_unprocessed_rows(page):
    """[{"er": ...}] for every unprocessed row that shows a 9-digit ER"""
    descriptor = PAGE_DESCRIPTORS[PageKind.UNPROCESSED]
    rows = []
    try:
        body_rows = page.locator(f"{descriptor['table']} tbody tr")
        for i in range(body_rows.count()):
            for text in _cell_texts(body_rows.nth(i)):
                if ER_PATTERN.match(text):
                    rows.append({"er": text})
                    break
    except Exception as e:
        print(f"  ⚠️ Error scanning unprocessed table: {e}")
    return rows


def find_row_by_exact_column_match(page, value, table_selector, column=None):
    """Row whose cell text equals value exactly (any column when column is None)"""
    try:
        body_rows = page.locator(f"{table_selector} tbody tr")
        for i in range(body_rows.count()):
            row = body_rows.nth(i)
            cells = _cell_texts(row)
            if column is not None and 0 <= column < len(cells):
                if cells[column] == value:
                    return row
            elif value in cells:
                return row
    except Exception as e:
        print(f"  ⚠️ Error searching table for {value}: {e}")
    return None
