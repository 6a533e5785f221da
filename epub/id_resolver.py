"""Resolve hrefs to manifest ids by URL-decoded basename."""

import logging
from typing import Dict, Iterable, Optional

from errors import UnresolvableLink
from models import ManifestItem
from .links import is_external, parse_href

logger = logging.getLogger('epub2md.epub.id_resolver')


class ManifestIndex:
    """
    Basename lookup tables over a manifest.

    Hrefs from the TOC and from chapter content are often written relative to
    different directories than the manifest, so matching ignores the
    directory part, the fragment and percent-encoding. An exact basename match
    wins over a match on the name without extension; on ties the first item
    in manifest order wins.
    """

    def __init__(self, items: Iterable[ManifestItem]):
        self._by_basename: Dict[str, str] = {}
        self._by_name: Dict[str, str] = {}
        for item in items:
            parts = parse_href(item.href)
            self._by_basename.setdefault(parts.basename, item.id)
            self._by_name.setdefault(parts.name, item.id)

    def get_item_id(self, href: str, require: bool = False) -> str:
        """
        Manifest id for ``href``, or '' when nothing matches.

        Args:
            href: Href, possibly relative and carrying a ``#fragment``
            require: Raise instead of returning ''

        Raises:
            UnresolvableLink: If ``require`` is set and the href does not resolve
        """
        item_id = self._resolve(href)
        if item_id is None:
            if require:
                raise UnresolvableLink(href)
            return ''
        return item_id

    def _resolve(self, href: str) -> Optional[str]:
        if not href or is_external(href):
            return None
        parts = parse_href(href)
        if not parts.basename:
            return None
        item_id = self._by_basename.get(parts.basename)
        if item_id is None:
            item_id = self._by_name.get(parts.name)
        return item_id


__all__ = ['ManifestIndex']
