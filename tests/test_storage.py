"""
Blob Store Tests
"""

import pytest

from services.storage import (
    LOOP_IMAGES_BUCKET,
    generate_storage_name,
    get_bucket,
)


class TestStorageNames:

    def test_keeps_lowercased_extension(self):
        assert generate_storage_name('Listing.PDF').endswith('.pdf')
        assert '.' not in generate_storage_name('README')
        assert '.' not in generate_storage_name('')

    @pytest.mark.parametrize('client_name', [
        'photo.jp/../../g',
        'photo.png/..',
        '..\\evil.ex\\e',
        'C:\\Users\\me\\front.jpg',
    ])
    def test_client_paths_never_reach_the_handle(self, ctx, client_name):
        handle = generate_storage_name(client_name)

        assert '/' not in handle
        assert '\\' not in handle
        bucket = get_bucket(LOOP_IMAGES_BUCKET)
        assert bucket.put_as(handle, b'data') == handle
        assert bucket.get(handle) == b'data'
