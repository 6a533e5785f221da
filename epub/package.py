"""OPF package document parsing: manifest, metadata and spine."""

import logging
from typing import Any, Dict, List, Optional, Union

from errors import MalformedPackage
from models import ManifestItem, Metadata, PackageDocument
from .xml_decoder import as_list, decode_xml, text_of

logger = logging.getLogger('epub2md.epub.package')

SIMPLE_METADATA_FIELDS = ('title', 'description', 'language', 'publisher', 'rights')


def parse_opf(text: Union[str, bytes]) -> PackageDocument:
    """
    Parse OPF text into manifest, metadata and spine.

    Raises:
        MalformedPackage: If manifest, metadata or spine is missing, a manifest
            id is duplicated, or the spine references an unknown id
    """
    document = decode_xml(text)
    package = document.get('package') or document.get('opf:package')
    if not isinstance(package, dict):
        raise MalformedPackage("package element not found in opf")

    manifest_node = _child(package, 'manifest')
    if not isinstance(manifest_node, dict):
        raise MalformedPackage("manifest not found in opf")
    metadata_node = _child(package, 'metadata')
    if metadata_node is None:
        raise MalformedPackage("metadata not found in opf")
    spine_node = _child(package, 'spine')
    if spine_node is None:
        raise MalformedPackage("spine not found in opf")

    manifest = parse_manifest(manifest_node)
    spine, non_linear = parse_spine(spine_node, manifest)
    toc_id = spine_node.get('@toc') if isinstance(spine_node, dict) else None

    return PackageDocument(
        manifest=manifest,
        metadata=parse_metadata(metadata_node),
        spine=spine,
        toc_id=toc_id or None,
        non_linear=non_linear
    )


def parse_manifest(manifest_node: Dict[str, Any]) -> Dict[str, ManifestItem]:
    """Build the id -> item mapping, preserving manifest order."""
    manifest: Dict[str, ManifestItem] = {}
    for item in as_list(_child(manifest_node, 'item')):
        if not isinstance(item, dict):
            continue
        item_id = item.get('@id')
        href = item.get('@href')
        if not item_id or not href:
            logger.warning(f"Skipping manifest item without id or href: {item}")
            continue
        if item_id in manifest:
            raise MalformedPackage(f"Duplicate manifest id: {item_id}")
        manifest[item_id] = ManifestItem(
            id=item_id,
            href=href,
            media_type=item.get('@media-type'),
            properties=item.get('@properties')
        )
    return manifest


def parse_metadata(metadata_node: Any) -> Metadata:
    """Best-effort metadata extraction; absent fields stay unset."""
    metadata = Metadata()
    if not isinstance(metadata_node, dict):
        return metadata

    for field_name in SIMPLE_METADATA_FIELDS:
        value = text_of(_dc(metadata_node, field_name))
        if value is not None:
            setattr(metadata, field_name, value)

    creators = as_list(_dc(metadata_node, 'creator'))
    metadata.author = [name for name in (text_of(c) for c in creators) if name]
    return metadata


def parse_spine(spine_node: Any, manifest: Dict[str, ManifestItem]):
    """
    Build the id -> position mapping.

    Returns:
        Tuple of (spine mapping, ids marked linear="no")
    """
    itemrefs = as_list(spine_node.get('itemref')) if isinstance(spine_node, dict) else []
    spine: Dict[str, int] = {}
    non_linear: List[str] = []

    for itemref in itemrefs:
        if not isinstance(itemref, dict) or not itemref.get('@idref'):
            continue
        idref = itemref['@idref']
        if idref not in manifest:
            raise MalformedPackage(f"Spine references unknown manifest id: {idref}")
        if idref in spine:
            logger.warning(f"Spine references '{idref}' more than once, keeping first position")
            continue
        spine[idref] = len(spine)
        if itemref.get('@linear') == 'no':
            non_linear.append(idref)

    return spine, non_linear


def _child(node: Dict[str, Any], name: str) -> Any:
    """Child element by local name, with or without an ``opf:`` prefix."""
    if name in node:
        return node[name]
    return node.get(f'opf:{name}')


def _dc(node: Dict[str, Any], name: str) -> Any:
    """Dublin Core element, tolerating a missing or unusual prefix."""
    for key in (f'dc:{name}', name, f'opf:{name}'):
        if key in node:
            return node[key]
    for key, value in node.items():
        if key.endswith(f':{name}'):
            return value
    return None


__all__ = ['parse_opf', 'parse_manifest', 'parse_metadata', 'parse_spine']
