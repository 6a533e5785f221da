"""Zip archive access with EPUB path normalization."""

import io
import logging
import posixpath
import zipfile
from pathlib import Path
from typing import BinaryIO, List, Optional, Union
from urllib.parse import unquote

from errors import ArchiveEntryNotFound, MalformedPackage

logger = logging.getLogger('epub2md.epub.archive')

ArchiveSource = Union[str, Path, bytes, BinaryIO]


class ArchiveEntry:
    """Lazily decoded content of one archive member."""

    def __init__(self, path: str, data: bytes):
        self.path = path
        self._data = data

    def as_bytes(self) -> bytes:
        return self._data

    def as_text(self) -> str:
        """Decode as UTF-8 (BOM tolerated), falling back to UTF-16 when marked."""
        data = self._data
        if data.startswith((b'\xff\xfe', b'\xfe\xff')):
            return data.decode('utf-16')
        return data.decode('utf-8-sig', errors='replace')

    def __len__(self) -> int:
        return len(self._data)


class ArchiveReader:
    """
    Read-only view of an EPUB zip archive.

    Paths passed to :meth:`read` may be percent-encoded, carry a leading
    slash or contain ``..`` segments; all are normalized before lookup.
    """

    def __init__(self, source: ArchiveSource, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('epub2md.epub.archive')

        if isinstance(source, (str, Path)):
            self.name = str(source)
            fileobj: BinaryIO = io.BytesIO(Path(source).read_bytes())
        elif isinstance(source, (bytes, bytearray)):
            self.name = '<bytes>'
            fileobj = io.BytesIO(bytes(source))
        else:
            self.name = getattr(source, 'name', '<stream>')
            fileobj = io.BytesIO(source.read())

        try:
            self._zip = zipfile.ZipFile(fileobj)
        except zipfile.BadZipFile as e:
            raise MalformedPackage(f"Not a zip archive: {self.name} ({e})") from e

        self._names = set(self._zip.namelist())
        self.logger.debug(f"Opened archive {self.name} with {len(self._names)} entries")

    @staticmethod
    def normalize_path(path: str) -> str:
        """Decode percent-escapes, drop the leading slash and collapse ``..``."""
        normalized = unquote(path).lstrip('/')
        normalized = posixpath.normpath(normalized) if normalized else ''
        return '' if normalized == '.' else normalized

    def exists(self, path: str) -> bool:
        return self._lookup(path) is not None

    def read(self, path: str) -> ArchiveEntry:
        """
        Read an archive member.

        Raises:
            ArchiveEntryNotFound: If no member matches the normalized path
        """
        member = self._lookup(path)
        if member is None:
            raise ArchiveEntryNotFound(self.normalize_path(path))
        return ArchiveEntry(member, self._zip.read(member))

    def namelist(self) -> List[str]:
        return self._zip.namelist()

    def close(self) -> None:
        self._zip.close()

    def _lookup(self, path: str) -> Optional[str]:
        normalized = self.normalize_path(path)
        if normalized in self._names:
            return normalized
        # some packagers store encoded names verbatim
        raw = path.lstrip('/')
        if raw in self._names:
            return raw
        return None


__all__ = ['ArchiveEntry', 'ArchiveReader', 'ArchiveSource']
