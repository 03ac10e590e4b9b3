import logging
import os
import random
import time
from io import BytesIO
from typing import Optional

from PIL import Image
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from app.config import settings

logger = logging.getLogger(__name__)

PICTURE_FIELD = "picture"
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}
CHUNK_SIZE = 64 * 1024


class UploadError(Exception):
    """Rejected upload; the message is returned to the client as is"""


def generate_filename(original_filename: str) -> str:
    """patient-<millis>-<random>.<ext>, keeping only the original extension"""
    extension = os.path.splitext(original_filename or "")[1].lower()
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 999999999)}"
    return f"patient-{unique_suffix}{extension}"


def ensure_upload_dir() -> str:
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    return settings.UPLOAD_DIR


def extract_picture(form) -> Optional[UploadFile]:
    """Return the single picture file of a multipart form, if any, after checking its type"""
    files = []
    for key, value in form.multi_items():
        if not isinstance(value, UploadFile):
            continue
        # Empty file inputs are submitted with a blank filename
        if not value.filename:
            continue
        if key != PICTURE_FIELD:
            raise UploadError("Unexpected field name for file upload.")
        files.append(value)

    if len(files) > 1:
        raise UploadError("Too many files. Only one file allowed.")
    if files:
        check_content_type(files[0])
        return files[0]
    return None


def check_content_type(upload: UploadFile) -> None:
    if upload.content_type not in ALLOWED_CONTENT_TYPES:
        raise UploadError("Only image files (JPEG, PNG, GIF) are allowed!")


async def read_limited(upload: UploadFile) -> bytes:
    buffer = BytesIO()
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        buffer.write(chunk)
        if buffer.tell() > settings.MAX_FILE_SIZE:
            max_mb = settings.MAX_FILE_SIZE / (1024 * 1024)
            raise UploadError(f"File too large. Maximum size is {max_mb:g}MB.")
    return buffer.getvalue()


def _write_file(path: str, contents: bytes) -> None:
    with open(path, "wb") as f:
        f.write(contents)


async def save_picture(upload: UploadFile) -> str:
    """
    Validate and persist an uploaded picture.

    Returns the stored path, which is what gets referenced by the patient record.
    Raises UploadError before anything is written when the file is rejected.
    """
    check_content_type(upload)
    contents = await read_limited(upload)

    try:
        Image.open(BytesIO(contents)).verify()
    except Exception as e:
        raise UploadError(f"Invalid image file: {str(e)}")

    path = os.path.join(ensure_upload_dir(), generate_filename(upload.filename))
    await run_in_threadpool(_write_file, path, contents)
    logger.info(f"Stored picture {path} ({len(contents)} bytes)")
    return path


def remove_file(path: Optional[str], orphan: bool = False) -> bool:
    """Best-effort delete of a stored picture. Failures are only logged."""
    if not path:
        return False
    try:
        os.remove(path)
        return True
    except OSError as e:
        if orphan:
            logger.error(f"Error deleting uploaded file {path}: {str(e)}")
        else:
            logger.warning(f"Could not delete picture file {path}: {str(e)}")
        return False
