# storage.py - proof-of-payment files on disk
# files live in one flat folder as {millis}_{random}.{ext}; the original name and type are only in the database

import os
import secrets
import time

from flask import current_app
from werkzeug.utils import secure_filename

from models import db, FileUpload
from errors import ValidationFailed, Internal


def upload_folder():
    folder = current_app.config.get('UPLOAD_FOLDER') or os.path.join(current_app.instance_path, 'uploads')
    os.makedirs(folder, exist_ok=True)
    return folder


def stored_name(original, mime_type):
    ext = secure_filename(original).rsplit('.', 1)[-1].lower() if '.' in original else ''
    if not ext or len(ext) > 8:
        ext = current_app.config['ALLOWED_UPLOAD_TYPES'][mime_type]
    return f'{int(time.time() * 1000)}_{secrets.token_hex(5)}.{ext}'


def measure(file_storage):
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def validate_upload(file_storage):
    """Reject a missing, wrongly typed or oversized upload. Returns (mime_type, size)."""
    if file_storage is None or not file_storage.filename:
        raise ValidationFailed('No file uploaded')

    mime_type = (file_storage.mimetype or '').lower()
    if mime_type not in current_app.config['ALLOWED_UPLOAD_TYPES']:
        raise ValidationFailed('File type not supported')

    size = measure(file_storage)
    if size > current_app.config['MAX_UPLOAD_BYTES']:
        raise ValidationFailed('File size too large. Maximum size is 10MB.')
    if size == 0:
        raise ValidationFailed('Uploaded file is empty')
    return mime_type, size


def save_upload(order, file_storage):
    """Write the file to disk, then record it against the order."""
    mime_type, size = validate_upload(file_storage)
    name = stored_name(file_storage.filename, mime_type)
    path = os.path.join(upload_folder(), name)

    try:
        file_storage.save(path)
    except OSError as e:
        current_app.logger.error('could not write upload %s: %s', path, e)
        raise Internal('Failed to save file')

    record = FileUpload(
        order_id=order.id,
        file_name=file_storage.filename,
        file_path=name,
        file_size=size,
        mime_type=mime_type,
    )
    try:
        db.session.add(record)
        db.session.commit()
    except Exception:
        db.session.rollback()
        # don't leave an orphan behind when the row never made it
        remove_file(name)
        raise

    current_app.logger.info('stored %s (%d bytes) for order %s as %s', record.file_name, size, order.id, name)
    return record


def file_path(record):
    return os.path.join(upload_folder(), record.file_path)


def remove_file(name):
    try:
        os.remove(os.path.join(upload_folder(), name))
        return True
    except OSError as e:
        current_app.logger.warning('could not delete stored file %s: %s', name, e)
        return False


def delete_upload(record):
    # disk first, best effort; the row goes either way
    removed = remove_file(record.file_path)
    db.session.delete(record)
    db.session.commit()
    return removed


def sweep_orphans(dry_run=False):
    """Reconcile the upload folder against FileUpload rows.

    Deletes stored files no row points at and reports rows whose file is gone.
    """
    folder = upload_folder()
    known = {path for (path,) in db.session.query(FileUpload.file_path).all()}
    on_disk = {name for name in os.listdir(folder) if os.path.isfile(os.path.join(folder, name))}

    orphans = sorted(on_disk - known)
    missing = sorted(known - on_disk)
    if not dry_run:
        for name in orphans:
            remove_file(name)
    for name in missing:
        current_app.logger.warning('upload row points at missing file %s', name)
    return orphans, missing
