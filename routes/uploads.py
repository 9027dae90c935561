from fastapi import UploadFile

from errors import BadRequest
from storage import ALLOWED_CONTENT_TYPES, MAX_IMAGE_BYTES


async def read_image(upload: UploadFile) -> bytes:
    if upload.content_type not in ALLOWED_CONTENT_TYPES:
        raise BadRequest("Only image files are allowed!")
    data = await upload.read()
    if len(data) > MAX_IMAGE_BYTES:
        raise BadRequest("Image must be 5MB or smaller")
    return data
