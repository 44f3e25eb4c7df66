import hashlib
import posixpath
import re
from typing import Optional

from werkzeug.utils import secure_filename

MAX_FILENAME_LENGTH = 255
MAX_EXTENSION_LENGTH = 32
CHUNK_NUMBER_WIDTH = 4

_NATURAL_SPLIT = re.compile(r"(\d+)", re.ASCII)


def sanitize_filename(name: str) -> str:
    """Make an untrusted name safe to use as a single storage key component.

    Directory parts and ``..`` segments are dropped, the extension is kept and the
    result is never empty for a non-empty input. Names with characters outside
    ASCII get a digest of the original name appended to the stem, so two names
    that only differ in those characters never share a key.
    """
    if not name:
        return ""
    digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:16]
    extension = secure_filename(find_extension(name))[:MAX_EXTENSION_LENGTH]
    budget = MAX_FILENAME_LENGTH - (len(extension) + 1 if extension else 0)
    stem = secure_filename(remove_extension(name))
    if not stem:
        stem = f"upload-{digest}"
    elif not name.isascii():
        stem = f"{stem[: budget - len(digest) - 1]}-{digest}"
    stem = stem[:budget]
    return f"{stem}.{extension}" if extension else stem


def find_extension(filename: str) -> str:
    base = posixpath.basename(filename.replace("\\", "/"))
    _, dot, extension = base.rpartition(".")
    return extension if dot else ""


def remove_extension(filename: str) -> str:
    extension = find_extension(filename)
    if not extension:
        return filename
    return filename[: -(len(extension) + 1)]


def create_safe_filename(filename: str, original_filename: str) -> str:
    """Keep the original upload's extension on a caller-chosen final name."""
    stem = remove_extension(filename)
    extension = find_extension(original_filename)
    if not extension:
        return sanitize_filename(stem)
    return sanitize_filename(f"{stem}.{extension}")


def chunk_filename(filename: str, chunk_number: int) -> str:
    # example-file.png.0001
    return f"{filename}.{str(chunk_number).zfill(CHUNK_NUMBER_WIDTH)}"


def chunk_number_from_key(key: str, filename: str) -> Optional[int]:
    base = posixpath.basename(key)
    match = re.fullmatch(re.escape(filename) + r"\.(\d+)", base)
    if match is None:
        return None
    return int(match.group(1))


def natural_sort_key(key: str) -> list:
    """Sort key comparing digit runs numerically, so ``x.2`` sorts before ``x.10``."""
    # split() with a capturing group puts the digit runs at the odd indexes
    return [
        (1, int(part), part) if index % 2 else (0, 0, part)
        for index, part in enumerate(_NATURAL_SPLIT.split(key))
    ]
