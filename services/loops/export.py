"""
Loop exports: CSV dumps of loop queries, activity logs and users, and a
single-loop PDF report rendered with PyMuPDF.
"""

import csv
import logging
from datetime import datetime
from io import StringIO

import fitz  # PyMuPDF
from flask import current_app

from services.storage import LOOP_IMAGES_BUCKET, get_bucket

logger = logging.getLogger(__name__)

LOOP_CSV_HEADERS = [
    'ID', 'Type', 'Property Address', 'Client Name', 'Client Email',
    'Client Phone', 'Sale Amount', 'Status', 'Start Date', 'End Date',
    'Creator', 'Created At', 'Updated At', 'Tags', 'Notes',
]

ACTIVITY_CSV_HEADERS = [
    'ID', 'Date', 'User', 'Email', 'Action', 'Description', 'IP Address',
]

USER_CSV_HEADERS = [
    'ID', 'Name', 'Email', 'Role', 'Suspended', 'Notify New Loops',
    'Notify Updated Loops', 'Created At', 'Last Active',
]

# US Letter in points
PAGE_WIDTH = 612
PAGE_HEIGHT = 792
MARGIN = 54
LINE_HEIGHT = 16


def _iso(value):
    return value.isoformat() if value else ''


def _write_csv(headers, rows):
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(['' if value is None else value for value in row])
    return output.getvalue()


def generate_loops_csv(loops):
    """CSV of loops; the header row is written even when there are none."""
    return _write_csv(LOOP_CSV_HEADERS, (
        [
            loop.id,
            loop.type,
            loop.property_address,
            loop.client_name,
            loop.client_email,
            loop.client_phone,
            f"{float(loop.sale):.2f}" if loop.sale is not None else '',
            loop.status,
            _iso(loop.start_date),
            _iso(loop.end_date),
            loop.creator_name,
            _iso(loop.created_at),
            _iso(loop.updated_at),
            loop.tags,
            loop.notes,
        ]
        for loop in loops
    ))


def generate_activity_csv(entries):
    return _write_csv(ACTIVITY_CSV_HEADERS, (
        [
            entry.id,
            _iso(entry.created_at),
            entry.user.name if entry.user else '',
            entry.user.email if entry.user else '',
            entry.action_type,
            entry.description,
            entry.ip_address,
        ]
        for entry in entries
    ))


def generate_users_csv(users):
    return _write_csv(USER_CSV_HEADERS, (
        [
            user.id,
            user.name,
            user.email,
            user.role,
            'yes' if user.suspended else 'no',
            'yes' if user.notify_on_new_loops else 'no',
            'yes' if user.notify_on_updated_loops else 'no',
            _iso(user.created_at),
            _iso(user.last_active),
        ]
        for user in users
    ))


class _PdfWriter:
    """Top-to-bottom text layout over PyMuPDF pages."""

    def __init__(self):
        self.doc = fitz.open()
        self.page = None
        self.y = PAGE_HEIGHT
        self.new_page()

    def new_page(self):
        self.page = self.doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        self.y = MARGIN

    def ensure_space(self, height):
        if self.y + height > PAGE_HEIGHT - MARGIN:
            self.new_page()

    def text(self, value, fontsize=11, bold=False):
        self.ensure_space(LINE_HEIGHT)
        self.page.insert_text(
            (MARGIN, self.y + fontsize),
            str(value),
            fontsize=fontsize,
            fontname='hebo' if bold else 'helv',
        )
        self.y += max(LINE_HEIGHT, fontsize + 6)

    def section(self, title, rows):
        self.y += 6
        self.text(title, fontsize=13, bold=True)
        for label, value in rows:
            self.text(f"{label}: {value if value not in (None, '') else 'N/A'}")

    def image(self, data, max_height=220):
        self.ensure_space(max_height)
        rect = fitz.Rect(MARGIN, self.y, PAGE_WIDTH - MARGIN, self.y + max_height)
        self.page.insert_image(rect, stream=data, keep_proportion=True)
        self.y += max_height + 10

    def finish(self):
        data = self.doc.tobytes()
        self.doc.close()
        return data


def generate_loop_pdf(loop):
    """
    Render a one-loop report: property, client, timeline and notes
    sections followed by up to PDF_MAX_IMAGES embedded images.

    Images that are missing or cannot be decoded are skipped.
    """
    writer = _PdfWriter()
    writer.text(f"Loop #{loop.id}: {loop.property_address}", fontsize=18, bold=True)
    writer.text(f"Generated {datetime.utcnow().strftime('%m/%d/%Y %H:%M')} UTC", fontsize=9)

    sale = f"${float(loop.sale):,.2f}" if loop.sale is not None else None
    writer.section('Property', [
        ('Address', loop.property_address),
        ('Type', loop.type),
        ('Status', loop.status),
        ('Sale', sale),
        ('Tags', loop.tags),
    ])
    writer.section('Client', [
        ('Name', loop.client_name),
        ('Email', loop.client_email),
        ('Phone', loop.client_phone),
    ])
    writer.section('Timeline', [
        ('Start Date', _iso(loop.start_date)),
        ('End Date', _iso(loop.end_date)),
        ('Created', _iso(loop.created_at)),
        ('Created By', loop.creator_name),
    ])
    writer.section('Notes', [('Notes', loop.notes)])

    max_images = current_app.config.get('PDF_MAX_IMAGES', 6)
    images = loop.image_list[:max_images]
    if images:
        writer.y += 6
        writer.text('Images', fontsize=13, bold=True)
        bucket = get_bucket(LOOP_IMAGES_BUCKET)
        for record in images:
            filename = record.get('filename')
            try:
                writer.image(bucket.get(filename))
            except Exception as e:
                logger.warning(f"Skipping image {filename} for loop {loop.id}: {e}")

    return writer.finish()
