"""Decode XML documents (container, OPF, NCX, XHTML nav) into nested dicts.

The decoded shape follows these rules:

- The result is ``{root_tag: node}``.
- Tags and attribute names keep their document prefix (``dc:title``,
  ``@epub:type``); elements in the default namespace use the local name.
- Attributes are stored under ``@``-prefixed keys.
- An element without attributes or children decodes to its text.
- Otherwise it decodes to a dict; text content (the element's own text plus
  the tails of its children) goes under ``#text``, unstripped.
- A child tag appearing more than once becomes a list, in document order.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from lxml import etree

from errors import MalformedPackage

logger = logging.getLogger('epub2md.epub.xml_decoder')

ATTRIBUTE_PREFIX = '@'
TEXT_KEY = '#text'
XML_DECLARATION_ENCODING = re.compile(r'^(\ufeff?\s*<\?xml[^>]*?)\s+encoding=["\'][^"\']*["\']')

XmlNode = Union[str, Dict[str, Any]]


def decode_xml(text: Union[str, bytes]) -> Dict[str, Any]:
    """
    Parse an XML document into an attribute-tagged nested dict.

    Args:
        text: XML document as text or bytes

    Returns:
        ``{root_tag: node}``

    Raises:
        MalformedPackage: If the document cannot be parsed at all
    """
    if isinstance(text, str):
        # the declared encoding no longer applies once the text is re-encoded
        data = XML_DECLARATION_ENCODING.sub(r"\1", text, count=1).encode('utf-8')
    else:
        data = text

    parser = etree.XMLParser(
        recover=True,
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        huge_tree=True
    )
    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as e:
        raise MalformedPackage(f"Invalid XML document: {e}") from e

    if root is None:
        raise MalformedPackage("Invalid XML document: empty or unparseable")

    return {_tag_name(root): _decode_element(root)}


def _decode_element(root: etree._Element) -> XmlNode:
    """Decode an element tree iteratively, children before parents."""
    # post-order over the element tree without recursion
    order: List[etree._Element] = []
    stack = [root]
    while stack:
        element = stack.pop()
        order.append(element)
        for child in element:
            if isinstance(child.tag, str):
                stack.append(child)

    decoded: Dict[etree._Element, XmlNode] = {}
    for element in reversed(order):
        decoded[element] = _build_node(element, decoded)
    return decoded[root]


def _build_node(element: etree._Element, decoded: Dict[etree._Element, XmlNode]) -> XmlNode:
    node: Dict[str, Any] = {}

    for name, value in element.attrib.items():
        node[ATTRIBUTE_PREFIX + _qualified_name(name, element)] = value

    text_parts = [element.text or '']
    for child in element:
        if isinstance(child.tag, str):
            key = _tag_name(child)
            _append_child(node, key, decoded[child])
        text_parts.append(child.tail or '')

    text = ''.join(text_parts)

    if not node:
        return text.strip()
    if text.strip():
        # mixed content keeps its whitespace, it may separate child text
        node[TEXT_KEY] = text
    return node


def _append_child(node: Dict[str, Any], key: str, value: XmlNode) -> None:
    if key not in node:
        node[key] = value
    elif isinstance(node[key], list):
        node[key].append(value)
    else:
        node[key] = [node[key], value]


def _tag_name(element: etree._Element) -> str:
    """Tag name with the prefix used in the document, if any."""
    _, local = _split_clark(element.tag)
    return f"{element.prefix}:{local}" if element.prefix else local


def _qualified_name(name: str, element: etree._Element) -> str:
    """Turn ``{uri}local`` into ``prefix:local`` using the element's nsmap."""
    namespace, local = _split_clark(name)
    if namespace is None:
        return local
    prefix = _prefix_for(namespace, element)
    return f"{prefix}:{local}" if prefix else local


def _split_clark(name: str) -> Tuple[Optional[str], str]:
    if name.startswith('{'):
        namespace, _, local = name[1:].partition('}')
        return namespace, local
    return None, name


def _prefix_for(namespace: str, element: etree._Element) -> Optional[str]:
    if namespace == 'http://www.w3.org/XML/1998/namespace':
        return 'xml'
    for prefix, uri in (element.nsmap or {}).items():
        if uri == namespace and prefix:
            return prefix
    return None


def as_list(value: Any) -> List[Any]:
    """Normalize a decoded child that may be absent, single or repeated."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def text_of(value: Any) -> Optional[str]:
    """Text content of a decoded node, ``None`` when there is none."""
    if value is None:
        return None
    if isinstance(value, list):
        value = value[0] if value else None
        return text_of(value)
    if isinstance(value, dict):
        text = (value.get(TEXT_KEY) or '').strip()
        return text or None
    text = str(value).strip()
    return text or None


def find_first(tree: Any, key: str) -> Any:
    """Breadth-first search for the first node stored under ``key``."""
    queue: List[Any] = [tree]
    seen = set()
    while queue:
        current = queue.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, dict):
            if key in current:
                return current[key]
            queue.extend(v for k, v in current.items() if not k.startswith(ATTRIBUTE_PREFIX))
        elif isinstance(current, list):
            queue.extend(current)
    return None


__all__ = [
    'ATTRIBUTE_PREFIX',
    'TEXT_KEY',
    'decode_xml',
    'as_list',
    'text_of',
    'find_first'
]
