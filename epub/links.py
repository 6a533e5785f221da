"""Href parsing helpers shared by id resolution and link rewriting."""

import posixpath
import re
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

# scheme followed by ':' (http:, https:, mailto:, data:, ...)
SCHEME_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9+.\-]*:')


@dataclass(frozen=True)
class HrefParts:
    """Components of an href such as ``../text/ch%201.xhtml#sec2``."""

    url: str  # href without the fragment
    hash: str  # fragment without '#', empty when absent
    prefix: str  # directory part of url
    basename: str  # URL-decoded file name
    name: str  # basename without extension
    ext: str  # extension without '.', empty when absent


def parse_href(href: str) -> HrefParts:
    """Split an href into url, fragment, directory, basename and extension."""
    href = href or ''
    url, _, fragment = href.partition('#')
    prefix, _, filename = url.rpartition('/')
    basename = unquote(filename)
    if '.' in basename:
        name, _, ext = basename.rpartition('.')
    else:
        name, ext = basename, ''
    return HrefParts(
        url=url,
        hash=fragment,
        prefix=prefix,
        basename=basename,
        name=name,
        ext=ext
    )


def is_external(href: str) -> bool:
    """True for hrefs carrying a URL scheme (http, mailto, data, ...)."""
    return bool(href) and bool(SCHEME_PATTERN.match(href))


def is_remote(href: str) -> bool:
    """True for http/https URLs."""
    return urlparse(href or '').scheme in ('http', 'https')


def remote_basename(url: str) -> str:
    """File name of a remote URL with query string and fragment removed."""
    path = urlparse(url).path
    return unquote(posixpath.basename(path))


def join_archive_path(base_dir: str, href: str) -> str:
    """Resolve ``href`` against an archive directory and normalize it."""
    if href.startswith('/'):
        return posixpath.normpath(href.lstrip('/'))
    joined = posixpath.join(base_dir, href) if base_dir else href
    normalized = posixpath.normpath(joined)
    return '' if normalized == '.' else normalized


__all__ = [
    'HrefParts',
    'parse_href',
    'is_external',
    'is_remote',
    'remote_basename',
    'join_archive_path'
]
