"""
Loop image handling: validate uploads, store them in the loops bucket and
build manifest records.
"""

import logging
from datetime import datetime

from flask import current_app

from services.exceptions import ValidationError
from services.storage import LOOP_IMAGES_BUCKET, get_bucket

logger = logging.getLogger(__name__)


def _validate_image(file_storage, content, max_bytes):
    mimetype = (file_storage.mimetype or '').lower()
    if not mimetype.startswith('image/'):
        return f"{file_storage.filename}: only image files are allowed"
    if len(content) > max_bytes:
        return f"{file_storage.filename}: must be {max_bytes // (1024 * 1024)}MB or smaller"
    if not content:
        return f"{file_storage.filename}: file is empty"
    return None


def process_uploaded_images(files):
    """
    Store uploaded images and return their manifest records.

    All files are validated before any is written.

    Returns:
        List of {filename, originalName, size, mimetype, uploadDate}
    """
    files = [f for f in (files or []) if f and f.filename]
    if not files:
        return []

    max_bytes = current_app.config.get('IMAGE_MAX_BYTES', 5 * 1024 * 1024)
    payloads = []
    errors = []
    for file_storage in files:
        content = file_storage.read()
        error = _validate_image(file_storage, content, max_bytes)
        if error:
            errors.append(error)
        payloads.append((file_storage, content))

    if errors:
        raise ValidationError('Invalid image upload', {'images': errors})

    bucket = get_bucket(LOOP_IMAGES_BUCKET)
    records = []
    for file_storage, content in payloads:
        handle = bucket.put(content, file_storage.filename)
        records.append({
            'filename': handle,
            'originalName': file_storage.filename,
            'size': len(content),
            'mimetype': file_storage.mimetype,
            'uploadDate': datetime.utcnow().isoformat(),
        })
    return records


def delete_images(records) -> int:
    """Remove stored image files, best-effort. Returns how many were removed."""
    bucket = get_bucket(LOOP_IMAGES_BUCKET)
    removed = 0
    for record in records or []:
        filename = record.get('filename') if isinstance(record, dict) else None
        if filename and bucket.delete(filename):
            removed += 1
    return removed


def image_path(filename):
    """Path of a stored loop image, or None if it is not in the bucket."""
    path = get_bucket(LOOP_IMAGES_BUCKET).path(filename)
    if path is None or not path.is_file():
        return None
    return path
