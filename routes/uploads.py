import logging
from datetime import datetime

from flask import Blueprint, current_app, jsonify, request

from extensions import get_storage, limiter, login_required
from utils.cloudinary_storage import MAX_FILES_PER_REQUEST, validate_upload

logger = logging.getLogger(__name__)

uploads_bp = Blueprint('uploads', __name__, url_prefix='/api/upload')


def _upload_one(file, metadata: dict) -> dict:
    data = file.read()
    validate_upload(file.mimetype, len(data), current_app.config.get('MAX_UPLOAD_BYTES', 10 * 1024 * 1024))
    result = get_storage().upload(data, file.filename, file.mimetype, metadata)
    return {
        'file_name': file.filename,
        'file_url': result['url'],
        'file_type': file.mimetype,
        'file_size': len(data),
        'public_id': result['public_id'],
        'resource_type': result['resource_type'],
        'uploaded_at': datetime.utcnow(),
    }


def _metadata() -> dict:
    return {
        'classroom_name': request.form.get('classroom_name'),
        'post_title': request.form.get('post_title'),
        'post_type': request.form.get('post_type'),
    }


@uploads_bp.route('/single', methods=['POST'])
@limiter.limit("30 per hour")
@login_required
def upload_single():
    file = request.files.get('file')
    if file is None or not file.filename:
        return jsonify({'error': 'No file uploaded'}), 400

    uploaded = _upload_one(file, _metadata())
    logger.info(f"Uploaded {uploaded['file_name']} as {uploaded['public_id']}")
    return jsonify({'message': 'File uploaded successfully', 'file': uploaded})


@uploads_bp.route('/multiple', methods=['POST'])
@limiter.limit("30 per hour")
@login_required
def upload_multiple():
    files = [f for f in request.files.getlist('files') if f and f.filename]
    if not files:
        return jsonify({'error': 'No files uploaded'}), 400
    if len(files) > MAX_FILES_PER_REQUEST:
        return jsonify({'error': f'You can upload at most {MAX_FILES_PER_REQUEST} files at once'}), 400

    metadata = _metadata()
    uploaded = [_upload_one(file, metadata) for file in files]
    logger.info(f"Uploaded {len(uploaded)} files for '{metadata.get('post_title')}'")
    return jsonify({'message': 'Files uploaded successfully', 'files': uploaded})


@uploads_bp.route('/<path:public_id>', methods=['DELETE'])
@login_required
def delete_file(public_id):
    result = get_storage().delete(public_id, request.args.get('resource_type'))
    if not result['success']:
        return jsonify({'error': 'Failed to delete file'}), 500
    return jsonify({'message': 'File deleted successfully'})
