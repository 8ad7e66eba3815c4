#!/usr/bin/env python3
"""
nodes.py - Node level helpers on top of lxml

lxml has no standalone text or attribute nodes. XPath returns them as
"smart strings" that remember their parent element, so every helper here
accepts either an element or such a string result.

Insertion helpers keep text placement the way a DOM would: the tail text that
follows a node stays in the document when the node is removed or replaced.
"""

import copy
import logging
from typing import Any, Optional, Union

from lxml import etree

from .errors import LoadError, StructuralError

logger = logging.getLogger(__name__)

Content = Union[str, bytes, etree._Element]


# ============================================================================
# NODE KINDS
# ============================================================================

def is_element(node: Any) -> bool:
    """True for real elements (comments and PIs are not elements)"""
    return isinstance(node, etree._Element) and isinstance(node.tag, str)


def is_tree_node(node: Any) -> bool:
    """True for anything that lives in the tree: elements, comments, PIs"""
    return isinstance(node, etree._Element)


def is_attribute(node: Any) -> bool:
    return getattr(node, 'is_attribute', False)


def is_text(node: Any) -> bool:
    return getattr(node, 'is_text', False) or getattr(node, 'is_tail', False)


def node_name(node: Any) -> str:
    """DOM style nodeName for any query result"""
    if is_element(node):
        return etree.QName(node).localname
    if is_attribute(node):
        return node.attrname
    if is_text(node):
        return '#text'
    if isinstance(node, etree._Comment):
        return '#comment'
    if isinstance(node, etree._ProcessingInstruction):
        return node.target
    return '#document'


def parent_of(node: Any) -> Optional[etree._Element]:
    """
    Return the element that contains node

    For attribute and text results this is the owning element; for a root
    element (or a comment beside it) it is None.
    """
    if isinstance(node, etree._Element):
        return node.getparent()
    getparent = getattr(node, 'getparent', None)
    return getparent() if getparent is not None else None


# ============================================================================
# ADOPTION AND CLONING
# ============================================================================

def parse_fragment(markup: Union[str, bytes]) -> etree._Element:
    """Parse a markup string holding exactly one element"""
    if isinstance(markup, str):
        markup = markup.encode('utf-8')

    if not markup.strip():
        raise LoadError('Empty XML fragment provided')

    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        return etree.fromstring(markup, parser)
    except etree.XMLSyntaxError as e:
        raise LoadError(f'XML fragment could not be parsed: {e}') from e


def adopt(content: Content) -> etree._Element:
    """
    Take ownership of content before it is inserted anywhere

    Strings are parsed; elements (possibly from a foreign document) are deep
    copied so the caller's node is never moved out of its own tree. The copy
    carries no tail text.
    """
    if isinstance(content, (str, bytes)):
        element = parse_fragment(content)
    elif isinstance(content, etree._Element):
        element = copy.deepcopy(content)
    else:
        raise TypeError(f'Cannot insert content of type {type(content).__name__}')

    element.tail = None
    return element


def clone(node: etree._Element) -> etree._Element:
    """Deep copy a node for a single insertion"""
    cloned = copy.deepcopy(node)
    cloned.tail = None
    return cloned


def string_value(node: Any) -> str:
    """XPath string-value of a node"""
    if isinstance(node, etree._Element):
        if is_element(node):
            return node.xpath('string()')
        return node.text or ''
    return str(node)


# ============================================================================
# MUTATION PRIMITIVES
# ============================================================================

def append_text(parent: etree._Element, text: str) -> None:
    """Append text after the last child of parent"""
    if not text:
        return
    if len(parent):
        last = parent[-1]
        last.tail = (last.tail or '') + text
    else:
        parent.text = (parent.text or '') + text


def append_copy(destination: etree._Element, node: Any) -> None:
    """Append a copy of any query result as the last child of destination"""
    if is_tree_node(node):
        destination.append(clone(node))
    else:
        append_text(destination, str(node))


def insert_before(reference: Any, node: etree._Element) -> bool:
    """
    Insert node as previous sibling of reference; False when parentless

    Text results insert in front of the text they came from. Attribute
    results have no siblings and always return False.
    """
    if is_attribute(reference):
        return False

    if is_text(reference):
        owner = reference.getparent()
        if owner is None:
            return False
        if reference.is_tail:
            # Directly after the owner's end tag, ahead of its tail
            return insert_after(owner, node)
        node.tail = owner.text
        owner.text = None
        owner.insert(0, node)
        return True

    if reference.getparent() is None:
        return False
    reference.addprevious(node)
    return True


def insert_after(reference: Any, node: etree._Element) -> bool:
    """
    Insert node directly after reference

    For an element the reference's tail moves onto the new node so the
    inserted element sits between reference and the text that used to follow
    it. For a text result the node goes right after that text.
    """
    if is_attribute(reference):
        return False

    if is_text(reference):
        owner = reference.getparent()
        if owner is None:
            return False
        node.tail = None
        if reference.is_tail:
            if owner.getparent() is None:
                return False
            # addnext places node after the owner's tail text
            owner.addnext(node)
        else:
            owner.insert(0, node)
        return True

    if reference.getparent() is None:
        return False
    node.tail = reference.tail
    reference.tail = None
    reference.addnext(node)
    return True


def replace(node: Any, replacement: etree._Element) -> None:
    """
    Put replacement where node is

    Text results are dropped and replacement takes their place.

    Raises:
        StructuralError: node is an attribute or has no parent
    """
    if is_attribute(node):
        raise StructuralError(f'Cannot replace attribute {node_name(node)!r} with an element')

    parent = parent_of(node)
    if parent is None:
        raise StructuralError(f'Cannot replace <{node_name(node)}>: node has no parent')

    if is_text(node):
        replacement.tail = None
        if node.is_tail:
            if parent.getparent() is None:
                raise StructuralError('Cannot replace text beside the root element')
            parent.tail = None
            parent.addnext(replacement)
        else:
            parent.text = None
            parent.insert(0, replacement)
        return

    replacement.tail = node.tail
    parent.replace(node, replacement)


def detach(node: Any) -> None:
    """
    Remove node from the document

    Elements keep their tail text in the tree. Attribute results delete the
    attribute and text results empty the text they came from.

    Raises:
        StructuralError: node has no parent
    """
    parent = parent_of(node)
    if parent is None:
        raise StructuralError(f'Cannot remove <{node_name(node)}>: node has no parent')

    if isinstance(node, etree._Element):
        if node.tail:
            previous = node.getprevious()
            if previous is not None:
                previous.tail = (previous.tail or '') + node.tail
            else:
                parent.text = (parent.text or '') + node.tail
        parent.remove(node)
    elif is_attribute(node):
        parent.attrib.pop(node.attrname, None)
    elif is_text(node):
        set_text(node, '')


def set_text(node: Any, value: str) -> None:
    """
    Assign the text content of node

    Elements lose their children, as DOM textContent assignment does.
    """
    if is_element(node):
        for child in list(node):
            node.remove(child)
        node.text = value
    elif isinstance(node, etree._Element):
        node.text = value
    elif is_attribute(node):
        owner = node.getparent()
        if owner is not None:
            owner.set(node.attrname, value)
    elif is_text(node):
        owner = node.getparent()
        if owner is None:
            return
        if getattr(node, 'is_tail', False):
            owner.tail = value
        else:
            owner.text = value
