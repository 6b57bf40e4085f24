"""
Love Journey - Media Uploads

Memory photos uploaded as files are pushed to Cloudinary; the memory record
only keeps the resulting URL.
"""

import logging

import cloudinary.uploader
from django.conf import settings

logger = logging.getLogger(__name__)


def upload_memory_image(image_file, relationship_id):
    """Upload a memory photo and return its https URL."""
    result = cloudinary.uploader.upload(
        image_file,
        folder=f'{settings.MEMORY_IMAGE_FOLDER}/{relationship_id}',
        resource_type='image',
    )
    logger.info('Uploaded memory image %s', result.get('public_id'))
    return result['secure_url']
