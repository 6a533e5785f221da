"""Output planning: classification, order labels and readable file names."""

import logging
import re
from typing import Dict, Iterator, List, Optional

from models import EntryKind, ManifestItem, OutputPlanEntry
from epub.links import parse_href
from .conversion_cache import ConversionCache

HTML_EXTENSIONS = {'htm', 'html', 'xhtml'}
IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp', 'svg', 'bmp', 'tif', 'tiff', 'avif'}
HTML_MEDIA_TYPES = {'application/xhtml+xml', 'text/html'}

INVALID_CHARS_PATTERN = re.compile(r'[\\/:*?"<>|]')
WHITESPACE_PATTERN = re.compile(r'\s')


class OrderPrefix:
    """
    Zero-padded counter for Markdown file names.

    The width is the digit count of ``maximum`` so that, for up to
    ``maximum`` labels, lexicographic order equals numeric order.
    """

    def __init__(self, maximum: int):
        self.width = len(str(max(1, maximum)))
        self.count = 0

    def next(self) -> str:
        self.count += 1
        return str(self.count).zfill(self.width)


def sanitize_file_name(name: str, ext: str = '', replacement: str = '_') -> str:
    """Replace characters illegal in file names and all whitespace."""
    sanitized = INVALID_CHARS_PATTERN.sub(replacement, name).strip()
    return WHITESPACE_PATTERN.sub(replacement, sanitized) + ext


def markdown_file_name(title: str) -> str:
    """Sanitized ``.md`` file name for a TOC title."""
    ext = '' if title.endswith('.md') else '.md'
    return sanitize_file_name(title, ext)


def classify(href: str, media_type: Optional[str] = None) -> EntryKind:
    """Classify a manifest entry by extension, falling back to media type."""
    ext = parse_href(href).ext.lower()
    if ext in HTML_EXTENSIONS:
        return EntryKind.MARKDOWN
    if ext in IMAGE_EXTENSIONS:
        return EntryKind.IMAGE
    if not ext and media_type:
        if media_type in HTML_MEDIA_TYPES:
            return EntryKind.MARKDOWN
        if media_type.startswith('image/'):
            return EntryKind.IMAGE
    return EntryKind.OTHER


class OutputPlan:
    """Planned entries: Markdown in reading order, then assets in manifest order."""

    def __init__(self, entries: List[OutputPlanEntry]):
        self.entries = entries
        self._by_id: Dict[str, OutputPlanEntry] = {entry.id: entry for entry in entries}

    def get(self, item_id: str) -> Optional[OutputPlanEntry]:
        return self._by_id.get(item_id)

    @property
    def markdown_entries(self) -> List[OutputPlanEntry]:
        return [e for e in self.entries if e.kind == EntryKind.MARKDOWN]

    @property
    def asset_entries(self) -> List[OutputPlanEntry]:
        return [e for e in self.entries if e.kind in (EntryKind.IMAGE, EntryKind.OTHER)]

    def __iter__(self) -> Iterator[OutputPlanEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


class OutputPlanner:
    """
    Computes where every manifest entry of a document is written.

    Args:
        document: Parsed :class:`epub.EpubDocument`
        unzip: Keep non-image assets under the static directory
        skip_ids: Manifest ids never exported
        image_directory: Subdirectory for images
        static_directory: Subdirectory for other kept assets
        cache: Per-run lookup cache
    """

    def __init__(self, document, unzip: bool = False, skip_ids=None,
                 image_directory: str = 'images', static_directory: str = 'static',
                 cache: Optional[ConversionCache] = None,
                 logger: Optional[logging.Logger] = None):
        self.document = document
        self.unzip = unzip
        self.skip_ids = set(skip_ids if skip_ids is not None else ['titlepage'])
        self.image_directory = image_directory
        self.static_directory = static_directory
        self.cache = cache or ConversionCache()
        self.logger = logger or logging.getLogger('epub2md.exporters.output_planner')

    def plan(self) -> OutputPlan:
        manifest = self.document.get_manifest()
        spine = self.document.spine
        toc_path = self.document.toc_path

        markdown_items: List[ManifestItem] = []
        asset_entries: List[OutputPlanEntry] = []
        skipped: List[OutputPlanEntry] = []
        asset_paths: Dict[str, str] = {}

        for item in manifest:
            source_path = self.document.resolve_path(item.href)
            if self._is_excluded(item, source_path, toc_path):
                skipped.append(self._skip_entry(item, source_path))
                continue

            kind = classify(item.href, item.media_type)
            if kind == EntryKind.MARKDOWN:
                markdown_items.append(item)
                continue

            if kind == EntryKind.OTHER and not self.unzip:
                skipped.append(self._skip_entry(item, source_path))
                continue

            directory = self.image_directory if kind == EntryKind.IMAGE else self.static_directory
            output_path = f"{directory}/{parse_href(item.href).basename}"
            if output_path in asset_paths:
                self.logger.warning(
                    f"'{item.href}' has the same file name as '{asset_paths[output_path]}', keeping the first"
                )
                skipped.append(self._skip_entry(item, source_path))
                continue
            asset_paths[output_path] = item.href
            asset_entries.append(OutputPlanEntry(
                id=item.id,
                kind=kind,
                order_label='',
                output_path=output_path,
                source_path=source_path
            ))

        # spine order first, HTML outside the spine after it in manifest order
        positions = {item.id: index for index, item in enumerate(manifest)}
        markdown_items.sort(key=lambda item: (
            0 if item.id in spine else 1,
            spine.get(item.id, positions[item.id])
        ))

        order = OrderPrefix(len(markdown_items))
        markdown_entries = []
        for item in markdown_items:
            label = order.next()
            title, file_name = self.readable_name(item)
            markdown_entries.append(OutputPlanEntry(
                id=item.id,
                kind=EntryKind.MARKDOWN,
                order_label=label,
                output_path=f"{label}-{file_name}",
                source_path=self.document.resolve_path(item.href),
                title=title
            ))

        self.logger.info(
            f"Planned {len(markdown_entries)} markdown files and {len(asset_entries)} assets "
            f"({len(skipped)} manifest entries skipped)"
        )
        return OutputPlan(markdown_entries + asset_entries + skipped)

    def readable_name(self, item: ManifestItem):
        """
        Title and sanitized ``.md`` file name for a Markdown entry.

        The first TOC node in document order targeting the item names the
        file; without one the source file stem is used.
        """
        node = self.cache.toc_node(item.id, self.document.toc.get_by_section_id)
        if node is not None and node.name:
            return node.name, markdown_file_name(node.name)
        return None, sanitize_file_name(parse_href(item.href).name + '.md')

    def _is_excluded(self, item: ManifestItem, source_path: str, toc_path: Optional[str]) -> bool:
        if item.id in self.skip_ids:
            return True
        if toc_path and source_path == toc_path:
            return True
        return item.href.endswith('.ncx')

    @staticmethod
    def _skip_entry(item: ManifestItem, source_path: str) -> OutputPlanEntry:
        return OutputPlanEntry(
            id=item.id,
            kind=EntryKind.SKIP,
            order_label='',
            output_path='',
            source_path=source_path
        )


__all__ = [
    'OrderPrefix',
    'OutputPlan',
    'OutputPlanner',
    'classify',
    'markdown_file_name',
    'sanitize_file_name'
]
