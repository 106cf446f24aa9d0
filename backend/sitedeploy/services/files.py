import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterator, List, Union

# Read and transferred as raw bytes; everything else is UTF-8 text
BINARY_EXTENSIONS = {
    '.png', '.jpg', '.jpeg', '.gif', '.ico', '.webp', '.bmp',
    '.woff', '.woff2', '.ttf', '.eot', '.otf',
}

CONTENT_TYPES = {
    '.html': 'text/html',
    '.htm': 'text/html',
    '.css': 'text/css',
    '.js': 'application/javascript',
    '.json': 'application/json',
    '.xml': 'application/xml',
    '.txt': 'text/plain',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.ico': 'image/x-icon',
    '.webp': 'image/webp',
    '.woff': 'font/woff',
    '.woff2': 'font/woff2',
    '.ttf': 'font/ttf',
}

DEFAULT_CONTENT_TYPE = 'text/plain'


@dataclass(frozen=True)
class FileEntry:
    absolute_path: Path
    storage_relative_path: str
    is_binary: bool

    def read_bytes(self) -> bytes:
        """File content exactly as on disk; text entries must be valid UTF-8."""
        data = self.absolute_path.read_bytes()
        if not self.is_binary:
            data.decode('utf-8')
        return data


def content_type_for(key: str) -> str:
    """
    Determine Content-Type from the extension of a key or path.

    Object metadata is not consulted; the table is the only source.
    """
    suffix = PurePosixPath(key).suffix.lower()
    return CONTENT_TYPES.get(suffix, DEFAULT_CONTENT_TYPE)


def is_binary_path(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in BINARY_EXTENSIONS


def _raise(error: OSError) -> None:
    raise error


def iter_site_files(root: Union[str, Path]) -> Iterator[FileEntry]:
    """
    Walk a site directory and yield one FileEntry per file.

    Directory and file names are visited in sorted order so that the
    sequence is stable for a given tree. Any error while walking aborts
    the walk; callers that need all-or-nothing should use
    collect_site_files().

    Raises:
        FileNotFoundError: root does not exist
        NotADirectoryError: root is a file
        OSError: a directory could not be read
    """
    root = Path(root)
    if not root.exists():
        raise FileNotFoundError(f"Directory not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            rel_path = path.relative_to(root).as_posix()
            yield FileEntry(
                absolute_path=path.resolve(),
                storage_relative_path=rel_path,
                is_binary=is_binary_path(path),
            )


def collect_site_files(root: Union[str, Path]) -> List[FileEntry]:
    """Complete list of files under root, or an OSError; never a partial list."""
    return list(iter_site_files(root))
