"""Split application binaries into checksummed parts for multipart uploads."""

import base64
import hashlib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

UPLOAD_FILE_MAX_PART_SIZE = 10 * 1024 * 1024


class FilePart(BaseModel):
    """One contiguous byte range of a file."""

    model_config = ConfigDict(frozen=True)

    part_number: int = Field(..., ge=1, description="1-based part number")
    md5: str = Field(..., description="Base64 encoded MD5 digest of blob")
    blob: bytes = Field(..., repr=False)


def compute_md5(blob: bytes) -> str:
    """Return the base64 encoded MD5 digest of ``blob``."""
    return base64.b64encode(hashlib.md5(blob).digest()).decode()  # noqa: S324


def get_size_and_parts_from_file(
    file_path: str | Path, part_size: int = UPLOAD_FILE_MAX_PART_SIZE
) -> tuple[int, list[FilePart]]:
    """Read a file and split it into fixed-size parts.

    Args:
        file_path: Path of the file to split
        part_size: Size of every part but the last one

    Returns:
        Tuple of (total size in bytes, ordered parts)

    Raises:
        FileNotFoundError: If the file doesn't exist or can't be read

    """
    path = Path(file_path)
    try:
        with path.open("rb") as f:
            parts: list[FilePart] = []
            size = 0
            while blob := f.read(part_size):
                size += len(blob)
                parts.append(
                    FilePart(
                        part_number=len(parts) + 1, md5=compute_md5(blob), blob=blob
                    )
                )
    except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
        raise FileNotFoundError(f"Application file not found: {path}") from e

    if not parts:
        parts.append(FilePart(part_number=1, md5=compute_md5(b""), blob=b""))

    return size, parts
