"""Attachment uploads through Cloudinary."""
import pytest
from cloudinary.exceptions import Error as CloudinaryError

from errors import ExternalServiceError, ValidationError
from utils.cloudinary_storage import CloudinaryStorage, resource_type_for, validate_upload


class FakeUploader:

    def __init__(self, destroy_result=None):
        self.uploads = []
        self.destroyed = []
        self.destroy_result = destroy_result or {'result': 'ok'}

    def upload(self, file_data, **options):
        self.uploads.append((file_data, options))
        return {'public_id': options['public_id'], 'secure_url': f"https://res.cloudinary.com/{options['public_id']}",
                'resource_type': options['resource_type']}

    def destroy(self, public_id, **options):
        self.destroyed.append((public_id, options))
        if isinstance(self.destroy_result, Exception):
            raise self.destroy_result
        return self.destroy_result


@pytest.mark.parametrize('mime_type, expected', [
    ('application/pdf', 'raw'),
    ('text/plain', 'raw'),
    ('image/png', 'image'),
    ('video/mp4', 'video'),
    ('application/vnd.ms-powerpoint', 'auto'),
])
def test_resource_type_for(mime_type, expected):
    assert resource_type_for(mime_type) == expected


def test_validate_upload():
    validate_upload('image/png', 1024, 10 * 1024 * 1024)
    with pytest.raises(ValidationError, match='Invalid file type'):
        validate_upload('application/x-msdownload', 10, 1024)
    with pytest.raises(ValidationError, match='too large'):
        validate_upload('application/pdf', 11 * 1024 * 1024, 10 * 1024 * 1024)


def test_upload_uses_folder_and_context():
    uploader = FakeUploader()
    storage = CloudinaryStorage(folder='classrooms', uploader=uploader)

    result = storage.upload(b'%PDF', 'notes.pdf', 'application/pdf',
                            {'classroom_name': 'Programming 1', 'post_title': None})

    _, options = uploader.uploads[0]
    assert options['public_id'].startswith('classrooms/')
    assert options['resource_type'] == 'raw'
    assert options['context'] == {'classroom_name': 'Programming 1'}
    assert result['url'].startswith('https://res.cloudinary.com/classrooms/')


def test_upload_without_credentials():
    with pytest.raises(ExternalServiceError, match='not configured'):
        CloudinaryStorage().upload(b'x', 'a.txt', 'text/plain')


def test_delete_reports_outcome():
    assert CloudinaryStorage(uploader=FakeUploader()).delete('skillverse/1', 'raw') == {'success': True}
    assert CloudinaryStorage(uploader=FakeUploader({'result': 'not found'})).delete('x')['success'] is True

    failed = CloudinaryStorage(uploader=FakeUploader(CloudinaryError('boom'))).delete('x')
    assert failed == {'success': False, 'error': 'boom'}
