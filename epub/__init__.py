"""EPUB document model: archive, package document, TOC and sections."""

from .archive import ArchiveEntry, ArchiveReader
from .container import ContainerInfo, parse_meta_container
from .document import EpubDocument, ParserOptions, parse_epub
from .id_resolver import ManifestIndex
from .package import parse_opf
from .section import Section
from .toc import Toc, find_toc_item, parse_toc
from .xml_decoder import decode_xml

__all__ = [
    'ArchiveEntry',
    'ArchiveReader',
    'ContainerInfo',
    'EpubDocument',
    'ManifestIndex',
    'ParserOptions',
    'Section',
    'Toc',
    'decode_xml',
    'find_toc_item',
    'parse_epub',
    'parse_meta_container',
    'parse_opf',
    'parse_toc'
]
