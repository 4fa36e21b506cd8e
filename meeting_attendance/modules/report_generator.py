"""
Report Generator Module - QR Meeting Attendance

This module exports a meeting's attendance as CSV or Excel.
Exports are built in memory and returned as bytes for the HTTP layer to send.
"""

import pandas as pd
import io
import re
from typing import Dict, List, Any
import logging

from openpyxl.styles import Font, PatternFill

from .meeting_manager import parse_timestamp

CSV_COLUMNS = ['S.No', 'Name', 'Email', 'Meeting', 'Location', 'Time']
EXCEL_COLUMNS = ['S.No', 'Name', 'Email', 'Location', 'Time']
EXCEL_COLUMN_WIDTHS = {'S.No': 8, 'Name': 25, 'Email': 30, 'Location': 25, 'Time': 25}
HEADER_FILL = 'FF4F46E5'


class ReportGenerator:
    """
    Attendance export in CSV and Excel formats.
    """

    def __init__(self, attendance_manager):
        """
        Initialize the report generator.

        Args:
            attendance_manager: Source of per-meeting attendance records
        """
        self.attendance = attendance_manager
        self.logger = logging.getLogger(__name__)

    def _build_rows(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        rows = []
        for index, record in enumerate(records, start=1):
            timestamp = parse_timestamp(record.get('timestamp'))
            rows.append({
                'S.No': index,
                'Name': record.get('member_name') or 'N/A',
                'Email': record.get('member_email') or 'N/A',
                'Meeting': record.get('meeting_title') or 'N/A',
                'Location': record.get('location') or 'N/A',
                'Time': timestamp.strftime('%Y-%m-%d %H:%M:%S UTC') if timestamp else 'N/A'
            })
        return rows

    def export_csv(self, meeting_id: int) -> Dict[str, Any]:
        """
        Export a meeting's attendance as CSV.

        Args:
            meeting_id (int): Meeting ID

        Returns:
            Dict[str, Any]: Export result with content bytes and filename
        """
        records = self.attendance.get_meeting_attendance(meeting_id)
        if not records:
            return {'success': False, 'error': 'No attendance data'}

        df = pd.DataFrame(self._build_rows(records), columns=CSV_COLUMNS)
        content = df.to_csv(index=False).encode('utf-8')

        self.logger.info(f"CSV export generated for meeting {meeting_id} ({len(records)} records)")

        return {
            'success': True,
            'content': content,
            'filename': f"attendance-{meeting_id}.csv",
            'mimetype': 'text/csv'
        }

    def export_excel(self, meeting_id: int) -> Dict[str, Any]:
        """
        Export a meeting's attendance as an Excel workbook with a styled header row.

        Args:
            meeting_id (int): Meeting ID

        Returns:
            Dict[str, Any]: Export result with content bytes and filename
        """
        records = self.attendance.get_meeting_attendance(meeting_id)
        if not records:
            return {'success': False, 'error': 'No attendance data'}

        df = pd.DataFrame(self._build_rows(records), columns=EXCEL_COLUMNS)

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, sheet_name='Attendance', index=False)

            sheet = writer.sheets['Attendance']
            for cell in sheet[1]:
                cell.font = Font(bold=True, color='FFFFFFFF', size=12)
                cell.fill = PatternFill(fill_type='solid', fgColor=HEADER_FILL)
            for index, column in enumerate(EXCEL_COLUMNS):
                sheet.column_dimensions[chr(ord('A') + index)].width = EXCEL_COLUMN_WIDTHS[column]

        meeting_title = records[0].get('meeting_title') or 'Meeting'

        self.logger.info(f"Excel export generated for meeting {meeting_id} ({len(records)} records)")

        return {
            'success': True,
            'content': buffer.getvalue(),
            'filename': f"{_safe_filename(meeting_title)}-attendance.xlsx",
            'mimetype': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        }


def _safe_filename(title: str) -> str:
    cleaned = re.sub(r'[^A-Za-z0-9 _.-]+', '', title).strip()
    return cleaned or 'Meeting'
