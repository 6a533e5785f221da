"""Per-run memo tables shared by the planner, link rewriter and exporter."""

from typing import Callable, Dict, Optional

from models import TocNode

_MISSING = object()


class ConversionCache:
    """
    Lookup results memoized for the lifetime of one conversion run.

    One instance is created per :class:`MarkdownExporter` run and passed to
    every component that needs it, so nothing leaks between runs when the
    library is used from a long-lived process.
    """

    def __init__(self):
        self._item_ids: Dict[str, str] = {}
        self._toc_nodes: Dict[str, Optional[TocNode]] = {}
        self._markdown: Dict[str, str] = {}
        self.hits = 0
        self.misses = 0

    def item_id(self, href: str, resolve: Callable[[str], str]) -> str:
        """Memoized href -> manifest id resolution."""
        cached = self._item_ids.get(href, _MISSING)
        if cached is not _MISSING:
            self.hits += 1
            return cached
        self.misses += 1
        item_id = resolve(href)
        self._item_ids[href] = item_id
        return item_id

    def toc_node(self, section_id: str, lookup: Callable[[str], Optional[TocNode]]) -> Optional[TocNode]:
        """Memoized first TOC node targeting ``section_id``."""
        cached = self._toc_nodes.get(section_id, _MISSING)
        if cached is not _MISSING:
            self.hits += 1
            return cached
        self.misses += 1
        node = lookup(section_id)
        self._toc_nodes[section_id] = node
        return node

    def markdown(self, section_id: str, convert: Callable[[], str]) -> str:
        """Converted Markdown of a section, computed once per run."""
        if section_id in self._markdown:
            self.hits += 1
            return self._markdown[section_id]
        self.misses += 1
        content = convert()
        self._markdown[section_id] = content
        return content

    def clear(self) -> None:
        self._item_ids.clear()
        self._toc_nodes.clear()
        self._markdown.clear()
        self.hits = 0
        self.misses = 0

    def get_stats(self) -> Dict[str, int]:
        return {
            'hits': self.hits,
            'misses': self.misses,
            'item_ids': len(self._item_ids),
            'toc_nodes': len(self._toc_nodes),
            'markdown': len(self._markdown)
        }


__all__ = ['ConversionCache']
