"""Spreadsheet renderings of timesheet data (openpyxl)."""
from io import BytesIO
from typing import Iterable, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from model import Employee
from schemas import CalendarDay, TimesheetRow
from workday import LEAVE, PRESENT

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

COMPANY_TITLE = "LOVAS IT"
LEGEND = "TYPE: WO- Weekly OFF, P- Present, LE- Leave, COFF- Comp OFF, HOL - Holiday, RE - Release"
HEADERS = ["Date", "Day", "Start Time", "End Time", "Total Time", "Type", "Remarks"]
LAST_COL = len(HEADERS)

_thin = Side(style="thin")
BORDER = Border(top=_thin, left=_thin, bottom=_thin, right=_thin)
BLUE_FILL = PatternFill(fill_type="solid", fgColor="FF0070C0")
WEEKEND_FILL = PatternFill(fill_type="solid", fgColor="FFFFE699")
WHITE_BOLD = Font(bold=True, size=11, color="FFFFFFFF")
CENTER = Alignment(horizontal="center", vertical="center", wrap_text=True)


def calendar_totals(rows: Iterable[CalendarDay]):
    """(total hours of present days, days worked, leave days taken)"""
    total_hours = 0.0
    worked = 0
    leave = 0
    for r in rows:
        if r.type == PRESENT:
            worked += 1
            total_hours += float(r.hours or 0)
        elif r.type == LEAVE:
            leave += 1
    return round(total_hours, 2), worked, leave


def _merge_row(sheet, row: int):
    sheet.merge_cells(start_row=row, start_column=1, end_row=row, end_column=LAST_COL)


def _border_row(sheet, row: int):
    for col in range(1, LAST_COL + 1):
        sheet.cell(row=row, column=col).border = BORDER


def _time(value) -> str:
    return value.strftime("%I:%M %p") if value else "—"


def build_calendar_workbook(employee: Optional[Employee], month: str, rows: List[CalendarDay]) -> bytes:
    wb = Workbook()
    sh = wb.active
    sh.title = "Timesheet"
    sh.sheet_view.showGridLines = False

    # Title
    _merge_row(sh, 1)
    title = sh.cell(row=1, column=1, value=COMPANY_TITLE)
    title.fill = BLUE_FILL
    title.font = Font(bold=True, size=18, color="FFFFFFFF", name="Calibri")
    title.alignment = CENTER
    _border_row(sh, 1)

    meta = [
        ("Employee ID:", employee.id if employee else None),
        ("Employee Name:", employee.name if employee else None),
        ("Department / Project:", employee.department if employee else None),
        ("Client Name:", employee.client_name if employee else None),
        ("Work Location:", employee.work_location if employee else None),
        ("Designation:", employee.designation if employee else None),
        ("Month & Year:", month),
    ]
    for row_num, (label, value) in enumerate(meta, start=2):
        label_cell = sh.cell(row=row_num, column=1, value=label)
        label_cell.font = Font(bold=True, size=11)
        label_cell.alignment = Alignment(horizontal="left", vertical="center")
        sh.merge_cells(start_row=row_num, start_column=2, end_row=row_num, end_column=LAST_COL)
        value_cell = sh.cell(row=row_num, column=2, value=value if value not in (None, "") else "—")
        value_cell.font = Font(bold=True, size=16, name="Calibri")
        value_cell.alignment = CENTER
        _border_row(sh, row_num)
        sh.row_dimensions[row_num].height = 25

    legend_row = 2 + len(meta)
    _merge_row(sh, legend_row)
    legend = sh.cell(row=legend_row, column=1, value=LEGEND)
    legend.font = Font(size=9, bold=True)
    legend.alignment = CENTER
    _border_row(sh, legend_row)

    spacer_row = legend_row + 1
    _merge_row(sh, spacer_row)
    _border_row(sh, spacer_row)

    header_row = spacer_row + 1
    for col, header in enumerate(HEADERS, start=1):
        cell = sh.cell(row=header_row, column=col, value=header)
        cell.fill = BLUE_FILL
        cell.font = WHITE_BOLD
        cell.alignment = CENTER
        cell.border = BORDER
    sh.row_dimensions[header_row].height = 25

    current = header_row + 1
    for r in rows:
        present = r.type == PRESENT
        values = [
            r.work_date.strftime("%d-%m-%Y"),
            r.day,
            _time(r.start_time) if present else "",
            _time(r.end_time) if present else "",
            (r.hours or 0) if present else "",
            r.type,
            r.status,
        ]
        weekend = r.work_date.weekday() >= 5
        for col, value in enumerate(values, start=1):
            cell = sh.cell(row=current, column=col, value=value)
            cell.alignment = CENTER
            cell.border = BORDER
            if weekend:
                cell.fill = WEEKEND_FILL
        sh.row_dimensions[current].height = 35 if len(r.status or "") > 30 else 20
        current += 1

    total_hours, worked, leave = calendar_totals(rows)
    for label, value in (
        ("Total No of Hours", f"{total_hours:.2f}"),
        ("Total No Of Days Worked", worked),
        ("Total Number of Leave Taken", leave),
    ):
        lbl = sh.cell(row=current, column=2, value=label)
        lbl.font = Font(bold=True)
        lbl.alignment = Alignment(horizontal="left")
        val = sh.cell(row=current, column=3, value=value)
        val.font = Font(bold=True)
        val.alignment = Alignment(horizontal="center")
        _border_row(sh, current)
        current += 1

    _merge_row(sh, current)
    _border_row(sh, current)
    current += 1

    # Signature block
    name = employee.name if employee else ""
    sh.cell(row=current, column=1, value=f"Employee Name : {name}")
    sh.cell(row=current, column=5, value="Authorized Name")
    sh.cell(row=current, column=7, value="Signature")
    for col in range(1, LAST_COL + 1):
        cell = sh.cell(row=current, column=col)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="center" if col in (5, 7) else "left", vertical="center")
        cell.border = BORDER
    current += 1
    sh.row_dimensions[current].height = 60
    _border_row(sh, current)
    current += 1

    _merge_row(sh, current)
    disclaimer = sh.cell(row=current, column=1, value="This Is A System Generated Timesheet")
    disclaimer.alignment = CENTER
    disclaimer.font = Font(italic=True, size=10, color="FF555555")
    _border_row(sh, current)

    # Widths from the longest unmerged value, clamped to 15..50
    merged = {coord for rng in sh.merged_cells.ranges for coord in _cells_of(rng)}
    for col in range(1, LAST_COL + 1):
        longest = 0
        for row in range(header_row, current + 1):
            cell = sh.cell(row=row, column=col)
            if cell.value is not None and cell.coordinate not in merged:
                longest = max(longest, len(str(cell.value)))
        sh.column_dimensions[get_column_letter(col)].width = min(max(longest + 4, 15), 50)

    return _to_bytes(wb)


def _cells_of(rng):
    for row in range(rng.min_row, rng.max_row + 1):
        for col in range(rng.min_col, rng.max_col + 1):
            yield f"{get_column_letter(col)}{row}"


def build_team_workbook(rows: List[TimesheetRow]) -> bytes:
    wb = Workbook()
    sh = wb.active
    sh.title = "Team Timesheets"
    columns = [("Employee", 25), ("Date", 15), ("Project", 25), ("Task", 30), ("Hours", 10), ("Status", 15)]
    for col, (header, width) in enumerate(columns, start=1):
        sh.cell(row=1, column=col, value=header).font = Font(bold=True)
        sh.column_dimensions[get_column_letter(col)].width = width
    for r in rows:
        sh.append([r.employee_name, r.work_date, r.project, r.task, r.hours, r.status])
    return _to_bytes(wb)


def _to_bytes(wb: Workbook) -> bytes:
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
