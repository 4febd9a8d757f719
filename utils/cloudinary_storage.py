import logging
import secrets
import time

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

# Uploaded as raw files rather than images/videos
RAW_MIME_TYPES = frozenset({
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'text/plain',
    'application/zip',
    'application/x-rar-compressed',
})

ALLOWED_UPLOAD_MIME_TYPES = frozenset({
    'image/jpeg',
    'image/jpg',
    'image/png',
    'image/gif',
    'application/vnd.ms-powerpoint',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation',
}) | RAW_MIME_TYPES

MAX_FILES_PER_REQUEST = 10


def resource_type_for(mime_type: str) -> str:
    """Cloudinary resource type for a MIME type: raw, video, image or auto."""
    mime_type = (mime_type or '').lower()
    if mime_type in RAW_MIME_TYPES:
        return 'raw'
    if mime_type.startswith('video/'):
        return 'video'
    if mime_type.startswith('image/'):
        return 'image'
    return 'auto'


def validate_upload(mime_type: str, size: int, max_bytes: int):
    if mime_type not in ALLOWED_UPLOAD_MIME_TYPES:
        raise ValidationError("Invalid file type. Only images, PDFs, and documents are allowed.")
    if size > max_bytes:
        raise ValidationError(f"File is too large (max {max_bytes // (1024 * 1024)} MB)")


class CloudinaryStorage:
    """Uploads attachments under one Cloudinary folder."""

    def __init__(self, cloud_name: str = None, api_key: str = None, api_secret: str = None,
                 folder: str = 'skillverse', uploader=None):
        self.folder = folder
        self.configured = bool(cloud_name and api_key and api_secret)
        self.uploader = uploader or cloudinary.uploader
        if self.configured:
            cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)
        elif uploader is None:
            logger.warning("Cloudinary credentials not configured, uploads disabled")

    @classmethod
    def from_config(cls, config) -> 'CloudinaryStorage':
        return cls(
            cloud_name=config.get('CLOUDINARY_CLOUD_NAME'),
            api_key=config.get('CLOUDINARY_API_KEY'),
            api_secret=config.get('CLOUDINARY_API_SECRET'),
            folder=config.get('CLOUDINARY_FOLDER') or 'skillverse',
        )

    def new_public_id(self) -> str:
        return f"{self.folder}/{int(time.time() * 1000)}_{secrets.randbelow(10 ** 9)}"

    @retry(
        retry=retry_if_exception_type(CloudinaryError),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _upload(self, file_data, options: dict) -> dict:
        return self.uploader.upload(file_data, **options)

    def upload(self, file_data, file_name: str, mime_type: str, metadata: dict = None) -> dict:
        """
        Upload a file.

        Args:
            file_data: bytes or a file-like object
            file_name: original file name
            mime_type: MIME type reported by the client
            metadata: optional context (classroom name, post title) added as Cloudinary context

        Returns:
            dict with public_id, url, resource_type
        """
        if not self.configured and self.uploader is cloudinary.uploader:
            raise ExternalServiceError("Cloudinary credentials not configured")

        resource_type = resource_type_for(mime_type)
        options = {
            'public_id': self.new_public_id(),
            'resource_type': resource_type,
            'overwrite': False,
        }
        if metadata:
            options['context'] = {k: str(v) for k, v in metadata.items() if v}

        logger.info(f"Uploading {file_name} ({mime_type}) as {resource_type} to {options['public_id']}")
        try:
            result = self._upload(file_data, options)
        except CloudinaryError as e:
            logger.error(f"Cloudinary upload failed for {file_name}: {e}")
            raise ExternalServiceError(f"File upload failed: {e}") from e

        return {
            'public_id': result.get('public_id'),
            'url': result.get('secure_url') or result.get('url'),
            'resource_type': result.get('resource_type', resource_type),
        }

    def delete(self, public_id: str, resource_type: str = None) -> dict:
        """Best-effort delete; failures are reported, not raised."""
        try:
            options = {'resource_type': resource_type} if resource_type else {}
            result = self.uploader.destroy(public_id, **options)
        except CloudinaryError as e:
            logger.error(f"Error deleting file from Cloudinary: {e}")
            return {'success': False, 'error': str(e)}
        if result.get('result') not in ('ok', 'not found'):
            logger.warning(f"Unexpected Cloudinary delete result for {public_id}: {result}")
            return {'success': False, 'error': result.get('result', 'unknown')}
        logger.info(f"File deleted: {public_id}")
        return {'success': True}
