"""Document facade composing archive, package, TOC and sections."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from converters import as_converter, default_converter
from converters.base_converter import ConverterLike
from errors import Epub2MdError
from models import ManifestItem, Metadata, PackageDocument, TocNode
from .archive import ArchiveEntry, ArchiveReader, ArchiveSource
from .container import CONTAINER_PATH, parse_meta_container
from .id_resolver import ManifestIndex
from .links import join_archive_path
from .package import parse_opf
from .section import Section
from .toc import Toc, find_toc_item, parse_toc


@dataclass
class ParserOptions:
    """Options of one parse."""

    expand: bool = False  # compute structured HTML objects eagerly
    converter: Optional[ConverterLike] = None  # default: markdownify strategy


class EpubDocument:
    """
    Parsed EPUB publication.

    Construction only opens the archive; :meth:`parse` reads the container,
    the package document and the TOC. Section HTML is loaded on demand.
    """

    def __init__(self, source: ArchiveSource, options: Optional[ParserOptions] = None,
                 logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('epub2md.epub.document')
        self.options = options or ParserOptions()
        self.converter = as_converter(self.options.converter) or default_converter()

        self.archive = ArchiveReader(source, self.logger)
        self.name = self.archive.name
        self.content_root = ''
        self.opf_path: Optional[str] = None
        self.toc_path: Optional[str] = None
        self.toc = Toc()
        self._package: Optional[PackageDocument] = None
        self._index: Optional[ManifestIndex] = None
        self._sections: Dict[str, Section] = {}

    def parse(self) -> 'EpubDocument':
        """
        Read container, package document and table of contents.

        Raises:
            ArchiveEntryNotFound: If container, OPF or declared TOC is missing
            MalformedPackage: If any of them is structurally invalid
        """
        container = parse_meta_container(self.read('/' + CONTAINER_PATH).as_bytes())
        self.content_root = container.content_root
        self.opf_path = container.opf_path

        self._package = parse_opf(self.read('/' + container.opf_path).as_bytes())
        self._index = ManifestIndex(self._package.manifest.values())

        toc_item = find_toc_item(self._package)
        if toc_item is None:
            self.logger.warning(f"{self.name}: no table of contents declared, file names fall back to source names")
        else:
            self.toc_path = self.resolve_path(toc_item.href)
            self.toc = parse_toc(self.read('/' + self.toc_path).as_bytes(), self.get_item_id)

        self.logger.info(
            f"Parsed {self.name}: {len(self._package.manifest)} manifest items, "
            f"{len(self._package.spine)} spine items, {len(self.toc)} TOC entries"
        )

        if self.options.expand:
            for section in self.sections:
                section.html_objects = section.to_html_objects()

        return self

    @property
    def package(self) -> PackageDocument:
        if self._package is None:
            raise Epub2MdError(f"{self.name} has not been parsed yet")
        return self._package

    @property
    def metadata(self) -> Metadata:
        return self.package.metadata

    @property
    def structure(self) -> List[TocNode]:
        """TOC forest; empty when the publication declares no TOC."""
        return self.toc.tree

    @property
    def spine(self) -> Dict[str, int]:
        return self.package.spine

    @property
    def non_linear(self) -> List[str]:
        return self.package.non_linear

    @property
    def sections(self) -> List[Section]:
        """Sections in reading order."""
        return [self.get_section(item_id) for item_id in self.package.spine_order]

    def get_manifest(self) -> List[ManifestItem]:
        """Manifest items in declaration order."""
        return list(self.package.manifest.values())

    def get_section(self, item_id: str) -> Optional[Section]:
        """
        Section for any manifest id, spine member or not.

        Returns ``None`` for ids absent from the manifest.
        """
        if item_id in self._sections:
            return self._sections[item_id]
        item = self.package.get_item(item_id)
        if item is None:
            return None
        section = Section(
            id=item_id,
            path=self.resolve_path(item.href),
            read_file=self.read,
            get_item_id=self.get_item_id,
            converter=self.converter
        )
        self._sections[item_id] = section
        return section

    def get_item_id(self, href: str) -> str:
        """Manifest id of ``href`` by basename, '' when unresolved."""
        if self._index is None:
            raise Epub2MdError(f"{self.name} has not been parsed yet")
        return self._index.get_item_id(href)

    def resolve_path(self, href: str) -> str:
        """Archive path of a manifest href (relative to the content root)."""
        return join_archive_path(self.content_root.rstrip('/'), href)

    def read(self, path: str) -> ArchiveEntry:
        """
        Read an archive file.

        A leading '/' addresses the archive root, anything else is relative
        to the content root.
        """
        if path.startswith('/'):
            return self.archive.read(path)
        return self.archive.read(self.resolve_path(path))

    def info(self) -> Dict[str, Any]:
        data = self.metadata.to_dict()
        data['non_linear'] = list(self.non_linear)
        return data

    def close(self) -> None:
        self.archive.close()

    def __enter__(self) -> 'EpubDocument':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def parse_epub(source: ArchiveSource, options: Optional[ParserOptions] = None,
               logger: Optional[logging.Logger] = None) -> EpubDocument:
    """Open and parse an EPUB from a path, bytes or binary stream."""
    return EpubDocument(source, options, logger).parse()


__all__ = ['EpubDocument', 'ParserOptions', 'parse_epub']
