"""Data models for the EPUB to Markdown conversion pipeline."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger('epub2md')


class Command(Enum):
    """Commands understood by the command-line front end."""
    INFO = "info"
    STRUCTURE = "structure"
    SECTIONS = "sections"
    CONVERT = "convert"
    UNZIP = "unzip"
    AUTOCORRECT = "autocorrect"
    MERGE = "merge"


class EntryKind(Enum):
    """Output classification of a manifest entry."""
    MARKDOWN = "markdown"
    IMAGE = "image"
    OTHER = "other"
    SKIP = "skip"


@dataclass(frozen=True)
class ManifestItem:
    """One ``<item>`` of the OPF manifest."""

    id: str
    href: str  # archive-relative to the content root, URL-encoded
    media_type: Optional[str] = None
    properties: Optional[str] = None

    @property
    def filename(self) -> str:
        """URL-decoded basename without extension."""
        from epub.links import parse_href
        return parse_href(self.href).name

    def to_dict(self) -> Dict[str, Any]:
        """Serialize manifest item to dictionary."""
        data = {'id': self.id, 'href': self.href}
        if self.media_type:
            data['media_type'] = self.media_type
        if self.properties:
            data['properties'] = self.properties
        return data


@dataclass
class Metadata:
    """Best-effort book metadata; absent fields stay ``None``."""

    title: Optional[str] = None
    author: List[str] = field(default_factory=list)
    description: Optional[str] = None
    language: Optional[str] = None
    publisher: Optional[str] = None
    rights: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize metadata, omitting absent fields."""
        data: Dict[str, Any] = {}
        if self.title is not None:
            data['title'] = self.title
        if self.author:
            data['author'] = list(self.author)
        for key in ('description', 'language', 'publisher', 'rights'):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class PackageDocument:
    """Parsed OPF package: manifest, metadata and spine."""

    manifest: Dict[str, ManifestItem]
    metadata: Metadata
    spine: Dict[str, int]  # manifest id -> reading position
    toc_id: Optional[str] = None  # value of <spine toc="...">
    non_linear: List[str] = field(default_factory=list)

    @property
    def spine_order(self) -> List[str]:
        """Manifest ids in reading order."""
        return sorted(self.spine, key=self.spine.__getitem__)

    def get_item(self, item_id: str) -> Optional[ManifestItem]:
        return self.manifest.get(item_id)


@dataclass
class TocNode:
    """A node of the normalized table-of-contents tree."""

    name: str
    section_id: str  # manifest id, empty when the href could not be resolved
    node_id: str  # fragment or navPoint id
    path: str  # href as written in the TOC document
    play_order: Union[int, str]
    children: List['TocNode'] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize node (and subtree) to dictionary."""
        return {
            'name': self.name,
            'section_id': self.section_id,
            'node_id': self.node_id,
            'path': self.path,
            'play_order': self.play_order,
            'children': [child.to_dict() for child in self.children]
        }


@dataclass
class OutputPlanEntry:
    """Where and how one manifest entry is written."""

    id: str
    kind: EntryKind
    order_label: str  # zero-padded, markdown entries only
    output_path: str  # posix path relative to the output directory
    source_path: str  # archive path of the source file
    title: Optional[str] = None

    @property
    def file_name(self) -> str:
        return self.output_path.rsplit('/', 1)[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'kind': self.kind.value,
            'order_label': self.order_label,
            'output_path': self.output_path,
            'source_path': self.source_path,
            'title': self.title
        }


@dataclass
class LinkRecord:
    """One link found and rewritten in converted Markdown."""

    url: str
    hash: str
    target_section_id: str
    is_image: bool
    rewritten: Optional[str] = None


@dataclass
class RunOptions:
    """Options of a single conversion run."""

    command: Command = Command.CONVERT
    should_merge: bool = False
    localize: bool = False
    merged_filename: Optional[str] = None

    @property
    def unzip(self) -> bool:
        return self.command == Command.UNZIP

    @property
    def autocorrect(self) -> bool:
        return self.command == Command.AUTOCORRECT


__all__ = [
    'Command',
    'EntryKind',
    'ManifestItem',
    'Metadata',
    'PackageDocument',
    'TocNode',
    'OutputPlanEntry',
    'LinkRecord',
    'RunOptions'
]
