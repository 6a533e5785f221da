"""Lazily materialized chapter content."""

import base64
import logging
import mimetypes
import posixpath
from typing import Any, Callable, Dict, List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag

from errors import ArchiveEntryNotFound
from .archive import ArchiveEntry
from .links import is_remote, join_archive_path, parse_href

logger = logging.getLogger('epub2md.epub.section')

OMITTED_TAGS = {'head', 'input', 'textarea', 'script', 'style', 'svg'}
UNWRAP_TAGS = {'html', 'body', 'div', 'span'}
PICKED_ATTRS = ('id', 'href', 'src')

HtmlObject = Dict[str, Any]


class Section:
    """
    One manifest item's HTML content.

    The HTML is read from the archive on first access and the Markdown is
    produced by the injected converter on first request. ``refresh=True``
    recomputes the Markdown as a fresh string.

    Args:
        id: Manifest id
        path: Archive path of the HTML file
        read_file: Archive reader; a leading '/' means archive root
        get_item_id: Href to manifest id resolver
        converter: Object with ``convert(html) -> markdown``
        expand: Compute :meth:`to_html_objects` eagerly
    """

    def __init__(self, id: str, path: str,
                 read_file: Callable[[str], ArchiveEntry],
                 get_item_id: Callable[[str], str],
                 converter: Any = None,
                 expand: bool = False):
        self.id = id
        self.path = path
        self._read_file = read_file
        self._get_item_id = get_item_id
        self._converter = converter
        self._raw_html: Optional[str] = None
        self._markdown: Optional[str] = None
        self.html_objects: Optional[List[HtmlObject]] = None

        if expand:
            self.html_objects = self.to_html_objects()

    @property
    def raw_html(self) -> str:
        """
        HTML text of the section.

        Raises:
            ArchiveEntryNotFound: If the file is missing from the archive
        """
        if self._raw_html is None:
            self._raw_html = self._read_file('/' + self.path).as_text()
        return self._raw_html

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.path)

    def register(self, converter: Any) -> 'Section':
        """Swap the Markdown converter, dropping any cached output."""
        self._converter = converter
        self._markdown = None
        return self

    def to_markdown(self, refresh: bool = False) -> str:
        if self._converter is None:
            raise ValueError(f"No Markdown converter registered for section {self.id}")
        if self._markdown is None or refresh:
            self._markdown = self._converter.convert(self.raw_html)
        return self._markdown

    def resolve_href(self, href: str) -> str:
        """Internal hrefs become ``#<sectionId>`` or ``#<sectionId>,<fragment>``."""
        if is_remote(href):
            return href
        parts = parse_href(href)
        section_id = self.id if not parts.url else self._get_item_id(href)
        if parts.hash:
            return f"#{section_id},{parts.hash}"
        return f"#{section_id}"

    def resource_path(self, src: str) -> str:
        """Archive path of a resource referenced relative to this section."""
        return join_archive_path(self.directory, parse_href(src).url)

    def resolve_src(self, src: str) -> str:
        """Internal sources become base64 data URIs; missing files are left as is."""
        if is_remote(src) or src.startswith('data:'):
            return src
        path = self.resource_path(src)
        try:
            data = self._read_file('/' + path).as_bytes()
        except ArchiveEntryNotFound:
            logger.warning(f"Resource {src} referenced by {self.id} not found in archive")
            return src
        mime_type = mimetypes.guess_type(path)[0] or 'application/octet-stream'
        return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"

    def to_html_objects(self) -> List[HtmlObject]:
        """
        Structured view of the section body.

        Element nodes are ``{tag, type: 1, attrs, children}`` and text nodes
        ``{type: 3, text}``. Wrapper tags are flattened away and text that
        would end up at the top level is wrapped in a ``p`` node.
        """
        soup = BeautifulSoup(self.raw_html, 'lxml')
        root = soup.html or soup

        results: Dict[int, List[HtmlObject]] = {}
        stack = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if isinstance(node, Tag) and not expanded and node.name not in OMITTED_TAGS:
                stack.append((node, True))
                stack.extend((child, False) for child in node.contents)
                continue
            results[id(node)] = self._transform(node, results)

        return results[id(root)]

    def _transform(self, node: Any, results: Dict[int, List[HtmlObject]]) -> List[HtmlObject]:
        if isinstance(node, Tag):
            if node.name in OMITTED_TAGS:
                return []
            children = [obj for child in node.contents for obj in results.get(id(child), [])]
            if node.name in UNWRAP_TAGS or node.name == '[document]':
                return children

            attrs = {}
            for attr in PICKED_ATTRS:
                value = node.get(attr)
                if not value:
                    continue
                if attr == 'href':
                    value = self.resolve_href(value)
                elif attr == 'src':
                    value = self.resolve_src(value)
                attrs[attr] = value

            obj: HtmlObject = {'tag': node.name, 'type': 1, 'attrs': attrs}
            if children:
                obj['children'] = children
            return [obj]

        # comments, doctype and processing instructions are NavigableString subclasses
        if type(node) is not NavigableString:
            return []
        text = str(node).strip()
        if not text:
            return []
        text_obj = {'type': 3, 'text': text}
        if _has_block_parent(node):
            return [text_obj]
        return [{'tag': 'p', 'type': 1, 'attrs': {}, 'children': [text_obj]}]


def _has_block_parent(node: NavigableString) -> bool:
    for parent in node.parents:
        if parent.name == '[document]':
            continue
        if parent.name not in UNWRAP_TAGS:
            return True
    return False


__all__ = ['Section', 'OMITTED_TAGS', 'UNWRAP_TAGS']
