"""Table-of-contents parsing for NCX and XHTML navigation documents.

Both formats are normalized into one :class:`models.TocNode` forest so callers
never branch on the source format. Trees are built and walked with explicit
stacks because externally authored TOC documents may nest arbitrarily deep.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from models import ManifestItem, PackageDocument, TocNode
from .links import parse_href
from .xml_decoder import TEXT_KEY, as_list, decode_xml, text_of

logger = logging.getLogger('epub2md.epub.toc')

NCX_MEDIA_TYPE = 'application/x-dtbncx+xml'

ResolveItemId = Callable[[str], str]


class Toc:
    """Normalized table of contents."""

    def __init__(self, tree: Optional[List[TocNode]] = None):
        self.tree: List[TocNode] = tree or []

    def walk(self) -> Iterator[TocNode]:
        """Pre-order traversal in document order, visiting each node once."""
        visited = set()
        stack = list(reversed(self.tree))
        while stack:
            node = stack.pop()
            if id(node) in visited:
                continue
            visited.add(id(node))
            yield node
            stack.extend(reversed(node.children))

    def find(self, predicate: Callable[[TocNode], bool]) -> Optional[TocNode]:
        for node in self.walk():
            if predicate(node):
                return node
        return None

    def get_by_section_id(self, section_id: str) -> Optional[TocNode]:
        """First node in document order targeting ``section_id``."""
        if not section_id:
            return None
        return self.find(lambda node: node.section_id == section_id)

    def to_list(self) -> List[Dict[str, Any]]:
        return [node.to_dict() for node in self.tree]

    def __len__(self) -> int:
        return sum(1 for _ in self.walk())

    def __bool__(self) -> bool:
        return bool(self.tree)


def parse_toc(text: Union[str, bytes], get_item_id: ResolveItemId) -> Toc:
    """
    Parse a TOC document of either format.

    A root ``html`` element selects the XHTML navigation branch, anything else
    is treated as NCX.
    """
    document = decode_xml(text)
    root_tag, root = next(iter(document.items()))
    if root_tag.rpartition(':')[2] == 'html':
        tree = _parse_html_nav(root, get_item_id)
    else:
        tree = _parse_ncx(root, get_item_id)
    logger.debug(f"Parsed TOC with {len(tree)} top-level entries")
    return Toc(tree)


def find_toc_item(package: PackageDocument) -> Optional[ManifestItem]:
    """
    Locate the TOC document in the manifest.

    Lookup order: spine ``toc`` attribute, id ``ncx``, NCX media type, then an
    item whose properties contain ``nav``.
    """
    manifest = package.manifest
    if package.toc_id and package.toc_id in manifest:
        return manifest[package.toc_id]
    if 'ncx' in manifest:
        return manifest['ncx']
    for item in manifest.values():
        if item.media_type == NCX_MEDIA_TYPE:
            return item
    for item in manifest.values():
        if 'nav' in (item.properties or '').split():
            return item
    return None


def _parse_ncx(ncx: Any, get_item_id: ResolveItemId) -> List[TocNode]:
    if not isinstance(ncx, dict):
        return []
    nav_map = ncx.get('navMap')
    if not isinstance(nav_map, dict):
        return []

    roots: List[TocNode] = []
    stack: List[Tuple[Any, List[TocNode]]] = [
        (point, roots) for point in reversed(as_list(nav_map.get('navPoint')))
    ]
    visited = set()

    while stack:
        point, siblings = stack.pop()
        if id(point) in visited or not isinstance(point, dict):
            continue
        visited.add(id(point))

        content = point.get('content')
        path = content.get('@src', '') if isinstance(content, dict) else ''
        label = point.get('navLabel')
        name = text_of(label.get('text')) if isinstance(label, dict) else text_of(label)

        node = TocNode(
            name=name or '',
            section_id=get_item_id(path),
            node_id=parse_href(path).hash or point.get('@id', ''),
            path=path,
            play_order=point.get('@playOrder', '')
        )
        siblings.append(node)

        for child in reversed(as_list(point.get('navPoint'))):
            stack.append((child, node.children))

    return roots


def _parse_html_nav(html: Any, get_item_id: ResolveItemId) -> List[TocNode]:
    nav = _select_toc_nav(html)
    if nav is None:
        return []

    roots: List[TocNode] = []
    stack: List[Tuple[Any, List[TocNode]]] = [
        (item, roots) for item in reversed(_list_items(nav))
    ]
    visited = set()
    # the XHTML format carries no explicit order attribute
    play_order = 0

    while stack:
        item, siblings = stack.pop()
        if id(item) in visited:
            continue
        visited.add(id(item))

        name, path = _nav_label(item)
        play_order += 1
        node = TocNode(
            name=name,
            section_id=get_item_id(path),
            node_id=parse_href(path).hash,
            path=path,
            play_order=play_order
        )
        siblings.append(node)

        if isinstance(item, dict):
            for child in reversed(_list_items(item)):
                stack.append((child, node.children))

    return roots


def _select_toc_nav(html: Any) -> Optional[Dict[str, Any]]:
    """The ``<nav epub:type="toc">`` element, else the first ``<nav>``."""
    navs: List[Dict[str, Any]] = []
    queue: List[Any] = [html]
    visited = set()
    while queue:
        current = queue.pop(0)
        if id(current) in visited:
            continue
        visited.add(id(current))
        if isinstance(current, list):
            queue.extend(current)
        elif isinstance(current, dict):
            for key, value in current.items():
                if key.startswith('@'):
                    continue
                if key == 'nav':
                    navs.extend(n for n in as_list(value) if isinstance(n, dict))
                else:
                    queue.append(value)

    for nav in navs:
        nav_type = nav.get('@epub:type') or nav.get('@type') or ''
        if 'toc' in nav_type.split():
            return nav
    return navs[0] if navs else None


def _list_items(parent: Dict[str, Any]) -> List[Any]:
    """``<li>`` children of the first ``<ol>`` (or ``<ul>``) under ``parent``."""
    lists = as_list(parent.get('ol')) or as_list(parent.get('ul'))
    if not lists or not isinstance(lists[0], dict):
        return []
    return as_list(lists[0].get('li'))


def _nav_label(item: Any) -> Tuple[str, str]:
    """Name and href of one ``<li>``; a leading ``<span>`` prefixes the name."""
    if not isinstance(item, dict):
        return (text_of(item) or ''), ''

    anchor = as_list(item.get('a'))
    anchor = anchor[0] if anchor else None

    if isinstance(anchor, dict):
        path = anchor.get('@href', '')
        prefix = ''.join(text_of(span) or '' for span in as_list(anchor.get('span')))
        return (prefix + anchor.get(TEXT_KEY, '')).strip(), path

    if isinstance(anchor, str):
        return anchor, ''

    # heading entries without a link
    return (text_of(item.get('span')) or text_of(item) or ''), ''


__all__ = ['Toc', 'parse_toc', 'find_toc_item', 'NCX_MEDIA_TYPE']
