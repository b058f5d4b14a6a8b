"""Local media files: application documents and job images.

Public URLs look like ``/uploads/<subdir>/<name>`` and map onto
``<upload_dir>/<subdir>/<name>``. Only files the service wrote itself are ever
removed, and only from the subdir the caller names. Cleanup is best-effort: a
failed unlink is logged and never propagated.
"""
from __future__ import annotations

import logging
import mimetypes
import shutil
import time
from pathlib import Path
from typing import BinaryIO, Optional

LOGGER = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"
APPLICATION_DOCS_DIR = "applications_docs"
JOB_IMAGES_DIR = "job_images"
DOCUMENT_SUFFIXES = {".pdf", ".doc", ".docx", ".txt", ".rtf", ".odt"}
IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"}
IMAGE_MAX_BYTES = 5 * 1024 * 1024
_CHUNK = 64 * 1024


def save_document(
    upload_dir: str,
    field_name: str,
    filename: Optional[str],
    fileobj: BinaryIO,
    subdir: str = APPLICATION_DOCS_DIR,
) -> str:
    """Write an uploaded file and return its public URL."""
    suffix = Path(filename or "").suffix.lower()
    if suffix not in DOCUMENT_SUFFIXES:
        raise ValueError(f"unsupported document type {suffix or '(none)'}")

    target_dir = Path(upload_dir) / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    name = f"{field_name}-{time.time_ns()}{suffix}"
    with (target_dir / name).open("wb") as out:
        shutil.copyfileobj(fileobj, out)
    return f"{URL_PREFIX}{subdir}/{name}"


def _image_suffix(filename: Optional[str], content_type: str) -> str:
    suffix = Path(filename or "").suffix.lower()
    if suffix in IMAGE_SUFFIXES:
        return suffix
    guessed = mimetypes.guess_extension(content_type) or ""
    return guessed if guessed in IMAGE_SUFFIXES else ".img"


def save_image(
    upload_dir: str,
    filename: Optional[str],
    content_type: Optional[str],
    fileobj: BinaryIO,
    *,
    max_bytes: int = IMAGE_MAX_BYTES,
) -> str:
    """Write an uploaded job image under ``job_images/`` and return its public URL.

    Only ``image/*`` content is accepted. A file over ``max_bytes`` is removed
    again and rejected with ``ValueError``.
    """
    content_type = (content_type or "").lower()
    if not content_type.startswith("image/"):
        raise ValueError("only image files are allowed")

    target_dir = Path(upload_dir) / JOB_IMAGES_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    name = f"jobImage-{time.time_ns()}{_image_suffix(filename, content_type)}"
    path = target_dir / name

    written = 0
    with path.open("wb") as out:
        while True:
            chunk = fileobj.read(_CHUNK)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                break
            out.write(chunk)
    if written > max_bytes:
        path.unlink(missing_ok=True)
        raise ValueError(f"image exceeds the {max_bytes // (1024 * 1024)} MB limit")
    return f"{URL_PREFIX}{JOB_IMAGES_DIR}/{name}"


def _path_for(upload_dir: str, url: str, subdir: str) -> Optional[Path]:
    if not url or not url.startswith(URL_PREFIX):
        return None
    root = (Path(upload_dir) / subdir).resolve()
    candidate = (Path(upload_dir) / url[len(URL_PREFIX):]).resolve()
    if candidate.parent != root:
        return None
    return candidate


def remove_media(
    upload_dir: str,
    url: Optional[str],
    *,
    subdir: str,
    keep: tuple[str, ...] = (),
) -> bool:
    """Unlink a stored file directly inside ``subdir``. Returns True when something was removed."""
    if not url or url in keep:
        return False
    path = _path_for(upload_dir, url, subdir)
    if path is None:
        LOGGER.debug("media cleanup skipped url=%s subdir=%s", url, subdir)
        return False
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as exc:
        LOGGER.warning("media cleanup failed url=%s error=%s", url, exc)
        return False
