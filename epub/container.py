"""META-INF/container.xml resolution."""

import logging
import posixpath
from dataclasses import dataclass
from typing import Any, Dict, Union

from errors import MalformedPackage
from .xml_decoder import as_list, decode_xml

logger = logging.getLogger('epub2md.epub.container')

CONTAINER_PATH = 'META-INF/container.xml'
OPF_MEDIA_TYPE = 'application/oebps-package+xml'


@dataclass(frozen=True)
class ContainerInfo:
    """Location of the package document inside the archive."""

    opf_path: str
    content_root: str  # '' or a directory prefix ending in '/'


def parse_meta_container(text: Union[str, bytes]) -> ContainerInfo:
    """
    Read the OPF path from container.xml and derive the content root.

    Raises:
        MalformedPackage: If no rootfile with a full-path is declared
    """
    document = decode_xml(text)
    container = document.get('container')
    if not isinstance(container, dict):
        raise MalformedPackage("container.xml has no <container> root")

    rootfiles_node = container.get('rootfiles')
    rootfiles = as_list(rootfiles_node.get('rootfile')) if isinstance(rootfiles_node, dict) else []
    rootfiles = [r for r in rootfiles if isinstance(r, dict) and r.get('@full-path')]
    if not rootfiles:
        raise MalformedPackage("container.xml declares no rootfile")

    # prefer the OPF rootfile when several renditions are declared
    chosen = next(
        (r for r in rootfiles if r.get('@media-type') == OPF_MEDIA_TYPE),
        rootfiles[0]
    )
    opf_path = chosen['@full-path'].lstrip('/')
    logger.debug(f"Package document at {opf_path}")
    return ContainerInfo(opf_path=opf_path, content_root=get_content_root(opf_path))


def get_content_root(opf_path: str) -> str:
    """Directory of the OPF file with a trailing slash; '' at top level."""
    root = posixpath.dirname(opf_path.lstrip('/'))
    if not root or root == '.':
        return ''
    if not root.endswith('/'):
        root += '/'
    return root


__all__ = ['CONTAINER_PATH', 'ContainerInfo', 'parse_meta_container', 'get_content_root']
