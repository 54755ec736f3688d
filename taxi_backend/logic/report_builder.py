# taxi_backend\logic\report_builder.py
# Report Builder: Turns enriched taxi requests into a styled spreadsheet grouped by car.
# The layout is computed once (layout_rows) and rendered identically to a file or to an in-memory buffer.

import io
import os
import uuid
import logging

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from taxi_backend.logic.dates import format_date, format_generated_at, local_now
from taxi_backend.logic.text_repair import repair_record

logger = logging.getLogger("ReportBuilder")

SHEET_TITLE = 'Solicitações de Táxi'
NO_CAR_GROUP = 'SEM CARRO DEFINIDO'
MISSING = 'N/A'
XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# (header, passenger/request key, width)
COLUMNS = [
    ('Nome', 'name', 25),
    ('Endereço', 'address', 35),
    ('Bairro', 'neighborhood', 20),
    ('Cidade', 'city', 20),
    ('Telefone', 'phone', 18),
    ('Centro de Custo', 'cost_center', 18),
    ('Turno', 'shift', 15),
    ('Data', 'date', 12),
    ('Horário', 'time', 10),
    ('Origem', 'origin', 25),
    ('Destino', 'destination', 25),
]
HEADERS = [c[0] for c in COLUMNS]

# Row kinds produced by layout_rows
HEADER = 'header'
REQUESTER = 'requester'
CAR = 'car'
COLUMN_HEADER = 'column_header'
PASSENGER = 'passenger'
BLANK = 'blank'
GENERATED_AT = 'generated_at'
TOTAL = 'total'

MERGED_KINDS = (REQUESTER, CAR, GENERATED_AT, TOTAL)

THIN = Side(style='thin')
MEDIUM = Side(style='medium')

STYLES = {
    HEADER: {
        "font": Font(bold=True, size=12, color='FFFFFF'),
        "fill": PatternFill(fill_type='solid', fgColor='366092'),
        "alignment": Alignment(horizontal='center', vertical='center'),
        "border": Border(top=THIN, left=THIN, bottom=THIN, right=THIN),
        "height": 25,
    },
    REQUESTER: {
        "font": Font(bold=True, size=11, color='000000'),
        "fill": PatternFill(fill_type='solid', fgColor='E8F4FD'),
        "alignment": Alignment(horizontal='left', vertical='center'),
        "border": Border(top=THIN, left=THIN, bottom=THIN, right=THIN),
        "height": 25,
    },
    CAR: {
        "font": Font(bold=True, size=14, color='FFFFFF'),
        "fill": PatternFill(fill_type='solid', fgColor='D9534F'),
        "alignment": Alignment(horizontal='center', vertical='center'),
        "border": Border(top=MEDIUM, left=MEDIUM, bottom=MEDIUM, right=MEDIUM),
        "height": 30,
    },
    COLUMN_HEADER: {
        "font": Font(bold=True, size=10, color='FFFFFF'),
        "fill": PatternFill(fill_type='solid', fgColor='6C757D'),
        "alignment": Alignment(horizontal='center', vertical='center'),
        "border": Border(top=THIN, left=THIN, bottom=THIN, right=THIN),
        "height": 20,
    },
    PASSENGER: {
        "font": Font(size=11),
        "alignment": Alignment(horizontal='left', vertical='center'),
        "border": Border(top=THIN, left=THIN, bottom=THIN, right=THIN),
        "height": 20,
    },
    GENERATED_AT: {
        "font": Font(italic=True, size=10),
        "alignment": Alignment(horizontal='center'),
    },
    TOTAL: {
        "font": Font(bold=True, size=10),
        "alignment": Alignment(horizontal='center'),
    },
}


def value_or_missing(value):
    return value if value not in (None, '') else MISSING


class RequestReportBuilder:
    """Builds the per-car taxi request spreadsheet"""

    def __init__(self, exports_dir):
        self.exports_dir = exports_dir

    @staticmethod
    def group_by_car(requests):
        """
        Groups requests by car label, in the order labels are first seen.
        Labels are compared exactly: 'Carro 1' and 'carro 1 ' are different cars.
        """
        grouped = {}
        for request in requests:
            car = request.get('car_number') or NO_CAR_GROUP
            grouped.setdefault(car, []).append(request)
        return grouped

    @staticmethod
    def requester_line(request):
        return (
            f"Solicitante: {value_or_missing(request.get('requester'))} | "
            f"Data: {format_date(request.get('date'))} | "
            f"Horário: {value_or_missing(request.get('time'))} | "
            f"{value_or_missing(request.get('origin'))} → {value_or_missing(request.get('destination'))}"
        )

    @staticmethod
    def passenger_rows(request):
        """One row per passenger; a request without passenger details yields one row built from the ride itself"""
        ride = [
            format_date(request.get('date')),
            value_or_missing(request.get('time')),
            value_or_missing(request.get('origin')),
            value_or_missing(request.get('destination')),
        ]

        details = request.get('passengersDetails') or []
        if not details:
            return [[
                value_or_missing(request.get('requester')),
                value_or_missing(request.get('origin')),
                '',
                '',
                '',
                value_or_missing(request.get('cost_center')),
                '',
            ] + ride]

        return [
            [value_or_missing(p.get(key)) for _, key, _ in COLUMNS[:7]] + ride
            for p in details
        ]

    def layout_rows(self, requests, generated_at=None):
        """Returns the report as a list of (kind, values) rows, top to bottom"""
        cleaned = [repair_record(r) for r in requests]
        grouped = self.group_by_car(cleaned)

        rows = [(HEADER, list(HEADERS))]
        for index, (car, car_requests) in enumerate(grouped.items()):
            rows.append((REQUESTER, [self.requester_line(car_requests[0])]))
            rows.append((CAR, [car]))
            rows.append((COLUMN_HEADER, list(HEADERS)))
            for request in car_requests:
                for values in self.passenger_rows(request):
                    rows.append((PASSENGER, values))
            if index < len(grouped) - 1:
                rows.append((BLANK, []))

        rows.append((BLANK, []))
        rows.append((BLANK, []))
        rows.append((GENERATED_AT, [f"Relatório gerado em: {format_generated_at(generated_at or local_now())}"]))
        rows.append((TOTAL, [f"Total de solicitações: {len(requests)}"]))
        return rows

    def build_workbook(self, requests, generated_at=None):
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = SHEET_TITLE

        for col, (_, _, width) in enumerate(COLUMNS, start=1):
            worksheet.column_dimensions[get_column_letter(col)].width = width

        last_col = len(COLUMNS)
        for row_number, (kind, values) in enumerate(self.layout_rows(requests, generated_at), start=1):
            if kind == BLANK:
                continue

            for col, value in enumerate(values, start=1):
                worksheet.cell(row=row_number, column=col, value=value)

            style = STYLES[kind]
            styled_cols = last_col if kind not in (GENERATED_AT, TOTAL) else 1
            for col in range(1, styled_cols + 1):
                cell = worksheet.cell(row=row_number, column=col)
                for attr in ('font', 'fill', 'alignment', 'border'):
                    if attr in style:
                        setattr(cell, attr, style[attr])

            if kind in MERGED_KINDS:
                worksheet.merge_cells(start_row=row_number, start_column=1, end_row=row_number, end_column=last_col)
            if 'height' in style:
                worksheet.row_dimensions[row_number].height = style['height']

        return workbook

    def generate_file(self, requests, filename='solicitacoes_taxi.xlsx'):
        """
        Saves the report under the exports directory and returns its path.
        Each call gets its own file so concurrent exports never overwrite each other.
        """
        os.makedirs(self.exports_dir, exist_ok=True)
        file_path = os.path.join(self.exports_dir, f"{uuid.uuid4().hex}_{filename}")
        self.build_workbook(requests).save(file_path)
        logger.info(f"Report with {len(requests)} requests saved to {file_path}")
        return file_path

    def generate_buffer(self, requests):
        """Returns the report as xlsx bytes"""
        buffer = io.BytesIO()
        self.build_workbook(requests).save(buffer)
        logger.info(f"Report with {len(requests)} requests generated in memory")
        return buffer.getvalue()

    @staticmethod
    def report_filename(day=None):
        day = day or local_now()
        return f"solicitacoes_taxi_{day.strftime('%Y-%m-%d')}.xlsx"
