#!/usr/bin/env python3
"""
convert.py - Conversion between elements and plain Python data

element_to_dict() gives the simplified, read-only view of an element used by
the "mapping" output mode. data_to_element() builds a document from nested
mappings and sequences for DocumentQuery.load_data().
"""

import re
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from lxml import etree

# Characters that force a value into a CDATA section
RESERVED_CHARS = re.compile(r'[<>&]')
XML_NAME = re.compile(r'^[A-Za-z_][\w.\-]*$')


def element_to_dict(element: etree._Element) -> Mapping[str, Any]:
    """
    Simplify an element into a read-only mapping keyed by its tag

    Example:
        <book id="1"><title>A</title></book>
        -> {'book': {'@id': '1', 'title': 'A'}}
    """
    return MappingProxyType({_local_name(element): _simplify(element)})


def _local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def _simplify(element: etree._Element) -> Union[Mapping[str, Any], str, None]:
    """
    Convert one element the way XML::Simple does:
    - Elements with only text become strings
    - Elements with children become mappings
    - Multiple children with the same tag become lists
    - Attributes are included with an @ prefix
    """
    result: Dict[str, Any] = {}

    for attr_name, attr_value in element.attrib.items():
        result[f'@{attr_name}'] = attr_value

    # Group child elements by tag name, keeping document order
    children_by_tag: Dict[str, list] = {}
    for child in element:
        if not isinstance(child.tag, str):
            continue
        children_by_tag.setdefault(_local_name(child), []).append(child)

    for tag, children in children_by_tag.items():
        if len(children) == 1:
            result[tag] = _simplify(children[0])
        else:
            result[tag] = tuple(_simplify(child) for child in children)

    text_content = element.text
    if text_content and text_content.strip():
        text_content = text_content.strip()
        if not result:
            return text_content
        result['content'] = text_content

    if not result:
        return None

    return MappingProxyType(result)


def data_to_element(data: Any, root_name: str = 'root') -> etree._Element:
    """
    Build an element tree from nested Python data

    Args:
        data: Mapping, sequence or scalar
        root_name: Tag of the returned root element

    Returns:
        Root element holding the converted data

    Raises:
        ValueError: a mapping key is not a valid XML element name
    """
    root = etree.Element(_check_name(root_name))
    _fill(root, data)
    return root


def _check_name(name: Any) -> str:
    name = str(name)
    if not XML_NAME.match(name) or name.lower().startswith('xml'):
        raise ValueError(f'Invalid element name: {name!r}')
    return name


def _fill(parent: etree._Element, data: Any) -> None:
    if isinstance(data, Mapping):
        for key, value in data.items():
            name = _check_name(key)
            if isinstance(value, (list, tuple)):
                total = len(value)
                for index, item in enumerate(value):
                    child = etree.SubElement(parent, name)
                    child.set('index', str(index))
                    child.set('total', str(total))
                    _fill(child, item)
            else:
                _fill(etree.SubElement(parent, name), value)
    elif isinstance(data, (list, tuple)):
        for item in data:
            _fill(parent, item)
    else:
        _set_scalar(parent, data)


def _set_scalar(element: etree._Element, value: Optional[Any]) -> None:
    if value is None:
        return
    if isinstance(value, bool):
        value = 'true' if value else 'false'

    text = str(value)
    if RESERVED_CHARS.search(text):
        element.text = etree.CDATA(text)
    else:
        element.text = text
