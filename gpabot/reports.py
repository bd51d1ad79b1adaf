"""PDF result slips with a QR-encoded verification id."""
from datetime import datetime
from html import escape
from io import BytesIO
from typing import Any, Dict

import qrcode
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .storage import CGPA, student_name

HEADER_BG = colors.Color(0.11, 0.25, 0.45)


def _qr_image(data: str, size: float = 35 * mm) -> Image:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    buffer = BytesIO()
    qr.make_image(fill_color='black', back_color='white').save(buffer)
    buffer.seek(0)
    return Image(buffer, width=size, height=size)


def _table_rows(record: Dict[str, Any]):
    if record.get('type') == CGPA:
        rows = [['Semester', 'Credits', 'GPA']]
        rows += [[s['semester'], str(s['credit']), s['gpa']] for s in record.get('semesters', [])]
        return rows
    rows = [['Course', 'Credit', 'Score', 'Grade', 'Point']]
    for r in record.get('results', []):
        rows.append([
            Paragraph(escape(r['course']), getSampleStyleSheet()['BodyText']),
            str(r['credit']), f"{r['score']:g}", r['grade'], f"{r['point']:.2f}",
        ])
    return rows


def format_date(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp).strftime('%d %b %Y, %H:%M UTC')
    except (TypeError, ValueError):
        return timestamp or ''


def render_report(record: Dict[str, Any], title: str = 'AAU GPA Calculator') -> bytes:
    styles = getSampleStyleSheet()
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"{record.get('type', 'GPA')} report",
                            leftMargin=18 * mm, rightMargin=18 * mm, topMargin=18 * mm, bottomMargin=18 * mm)

    story = [
        Paragraph(title, styles['Title']),
        Paragraph(f"{record.get('type', 'GPA')} Result Slip", styles['Heading2']),
        Spacer(1, 4 * mm),
        Paragraph(f"<b>Student:</b> {escape(student_name(record))}", styles['Normal']),
        Paragraph(f"<b>Date:</b> {format_date(record.get('timestamp', ''))}", styles['Normal']),
    ]
    if record.get('program'):
        story.append(Paragraph(
            f"<b>Program:</b> {record.get('year', '')} {record.get('semester', '')} ({record['program']})",
            styles['Normal'],
        ))
    story.append(Spacer(1, 6 * mm))

    table = Table(_table_rows(record), repeatRows=1, hAlign='LEFT')
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), HEADER_BG),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
    ]))
    story += [
        table,
        Spacer(1, 6 * mm),
        Paragraph(f"<b>Final {record.get('type', 'GPA')}: {record.get('gpa')} ({record.get('grade', '')})</b>",
                  styles['Heading3']),
        Spacer(1, 8 * mm),
    ]

    verification_id = record.get('verificationId')
    if verification_id:
        story += [
            _qr_image(verification_id),
            Paragraph(f"Verification ID: <b>{verification_id}</b>", styles['Normal']),
        ]

    doc.build(story)
    return buffer.getvalue()
