"""PDF artifact decoding and file storage.

Decoded bytes are written under `reports_dir` as
"<epoch-ms>-<sanitized filename>" and exposed as
"<reports_url_prefix>/<stored name>".  That URL is what report rows keep.
"""

import base64
import binascii
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from readiness.config import settings
from readiness.middleware.exceptions import PdfFormatError
from readiness.schemas.validators import sanitize_filename

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF"
DATA_URL_PREFIX = "data:application/pdf;base64,"


def decode_pdf(data: str) -> bytes:
    """Decode base64 (optionally a data: URL) and check the PDF signature.

    Raises:
        PdfFormatError: not base64, or not a PDF once decoded
    """
    if not isinstance(data, str) or not data:
        raise PdfFormatError()
    if data.startswith(DATA_URL_PREFIX):
        data = data[len(DATA_URL_PREFIX):]
    data = "".join(data.split())

    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise PdfFormatError("PDF data is not valid base64") from exc

    if not raw.startswith(PDF_SIGNATURE):
        raise PdfFormatError()
    return raw


def format_file_size(size: int | None) -> str:
    if not size:
        return "Unknown size"

    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{value:.1f} {units[unit]}"


@dataclass
class StoredPdf:
    url: str
    path: Path
    filename: str
    size: int


class PdfStorage:
    def __init__(self, base_dir: str | Path, url_prefix: str):
        self.base_dir = Path(base_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def save(self, content: bytes, filename: str) -> StoredPdf:
        """Write bytes to a collision-free location.

        Raises:
            OSError: the file could not be written
        """
        self.base_dir.mkdir(parents=True, exist_ok=True)
        stored_name = f"{int(time.time() * 1000)}-{sanitize_filename(filename)}"
        path = self.base_dir / stored_name
        path.write_bytes(content)
        logger.info("Stored PDF %s (%d bytes)", stored_name, len(content))
        return StoredPdf(
            url=f"{self.url_prefix}/{stored_name}",
            path=path,
            filename=filename,
            size=len(content),
        )

    def path_for_name(self, name: str) -> Path | None:
        """Resolve a stored file name; None if it escapes base_dir or is missing."""
        if not name or name != Path(name).name:
            return None
        base = self.base_dir.resolve()
        path = (base / name).resolve()
        if path.parent != base or not path.is_file():
            return None
        return path

    def path_for_url(self, url: str | None) -> Path | None:
        if not url or not url.startswith(self.url_prefix + "/"):
            return None
        return self.path_for_name(url[len(self.url_prefix) + 1:])


def get_pdf_storage() -> PdfStorage:
    """FastAPI dependency."""
    return PdfStorage(settings.reports_dir, settings.reports_url_prefix)
