#!/usr/bin/env python3
"""
query.py - Fluent XPath query and mutation facade

DocumentQuery owns one lxml document and the cursor produced by the most
recent query. Mutation methods iterate that cursor and return the facade, so
calls chain the way jQuery does, with XPath in place of CSS selectors:

    dq = DocumentQuery()
    dq.load(xml_string).path('//item[@test]').set_attr('seen', '1')
    print(dq.to_string())
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Union

from lxml import etree

from . import nodes
from .config import Settings
from .convert import data_to_element, element_to_dict
from .cursor import ResultCursor
from .errors import CallbackResolutionError, LoadError, QueryError, UnknownMemberError

logger = logging.getLogger(__name__)

SAVE_MODES = ('document', 'string', 'mapping')


@dataclass
class WalkContext:
    """Per-node record handed to walk() and each() callbacks"""
    results: ResultCursor
    element: Any
    position: int
    context: 'DocumentQuery'


class DocumentQuery:
    """
    jQuery-style manipulation of an XML document using XPath

    Only the cursor of the last non side-channel query is kept as state.
    Callers holding cursors from earlier queries may see nodes that later
    mutations have detached from the document.
    """

    def __init__(self, version: str = '1.0', encoding: str = 'utf-8',
                 settings: Optional[Settings] = None):
        self.version = version
        self.encoding = encoding
        self.settings = settings if settings is not None else Settings.from_env()

        self._tree: Optional[etree._ElementTree] = None
        self._results = ResultCursor()

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails
        raise UnknownMemberError(f"Member `DocumentQuery.{name}` does not exist.")

    # ========================================================================
    # LOADING
    # ========================================================================

    def _parser(self) -> etree.XMLParser:
        return etree.XMLParser(
            remove_blank_text=not self.settings.preserve_whitespace,
            resolve_entities=False,
            no_network=True,
            huge_tree=self.settings.huge_tree
        )

    def _parse(self, source: Union[str, bytes]) -> etree._ElementTree:
        if not isinstance(source, (str, bytes)):
            raise LoadError(f'XML source must be str or bytes, not {type(source).__name__}')

        if isinstance(source, str):
            source = source.encode('utf-8')

        if not source.strip():
            raise LoadError('Empty XML source provided')

        try:
            root = etree.fromstring(source, self._parser())
        except etree.XMLSyntaxError as e:
            raise LoadError(f'XML source could not be loaded into the DOM: {e}') from e

        return etree.ElementTree(root)

    def load(self, source: Union[str, bytes], expression: Optional[str] = None,
             return_cursor: bool = False) -> Union['DocumentQuery', ResultCursor]:
        """
        Load markup, replacing the current document

        Args:
            source: Well-formed XML as str or bytes
            expression: XPath to run immediately after loading
            return_cursor: Return the expression's cursor instead of self

        Returns:
            self, or the new cursor when an expression and return_cursor are given

        Raises:
            LoadError: source is empty or not well-formed
        """
        self._tree = self._parse(source)
        self._results = ResultCursor()
        logger.debug(f"Loaded document with root <{nodes.node_name(self._tree.getroot())}>")

        if expression is not None:
            self.path(expression)
            if return_cursor:
                return self._results

        return self

    def load_file(self, filename: str, expression: Optional[str] = None,
                  return_cursor: bool = False) -> Union['DocumentQuery', ResultCursor]:
        """
        Load markup from a file (see load())

        Raises:
            LoadError: file is missing, unreadable or not well-formed
        """
        if not os.path.exists(filename):
            raise LoadError(f'XML file not found: {filename}')

        if not os.access(filename, os.R_OK):
            raise LoadError(f'Cannot read XML file: {filename}')

        with open(filename, 'rb') as f:
            source = f.read()

        logger.debug(f"Read {len(source)} bytes from {filename}")
        return self.load(source, expression, return_cursor)

    def load_data(self, data: Any, root_name: str = 'root', expression: Optional[str] = None,
                  return_cursor: bool = False) -> Union['DocumentQuery', ResultCursor]:
        """Load a document built from nested mappings and sequences"""
        root = data_to_element(data, root_name)
        return self.load(etree.tostring(root, encoding='utf-8'), expression, return_cursor)

    # ========================================================================
    # QUERYING
    # ========================================================================

    def _require_tree(self) -> etree._ElementTree:
        if self._tree is None:
            raise LoadError('No document loaded. Call load() first.')
        return self._tree

    def path(self, expression: str, return_cursor: bool = False,
             context: Optional[etree._Element] = None) -> Union['DocumentQuery', ResultCursor]:
        """
        Apply an XPath query to the document or to a context node

        Args:
            expression: XPath expression selecting a node-set
            return_cursor: Return the new cursor and leave the active cursor alone
            context: Evaluate relative to this node instead of the document;
                must be an element, comment or PI, not a text or attribute result

        Returns:
            self, or the new cursor when return_cursor is true

        Raises:
            QueryError: invalid expression, a result that is not a node-set, or
                a context that is not a tree node
        """
        if context is not None and not nodes.is_tree_node(context):
            raise QueryError(f"Cannot evaluate '{expression}' against a {nodes.node_name(context)} result; "
                             f"use its parent element as context")
        target = context if context is not None else self._require_tree()

        try:
            found = target.xpath(expression)
        except (etree.XPathEvalError, etree.XPathSyntaxError) as e:
            raise QueryError(f"Invalid XPath expression '{expression}': {e}") from e

        if not isinstance(found, list):
            raise QueryError(f"XPath expression '{expression}' did not select a node-set")

        cursor = ResultCursor(found)
        logger.debug(f"Query '{expression}' matched {cursor.count()} nodes")

        if return_cursor:
            return cursor

        self._results = cursor
        return self

    def count(self, cursor: Optional[ResultCursor] = None) -> int:
        return (cursor if cursor is not None else self._results).count()

    @property
    def results(self) -> ResultCursor:
        """Cursor of the last query"""
        return self._results

    @property
    def document(self) -> Optional[etree._ElementTree]:
        return self._tree

    @property
    def root(self) -> Optional[etree._Element]:
        return self._tree.getroot() if self._tree is not None else None

    def __iter__(self) -> Iterator[Any]:
        return iter(self._results)

    def __len__(self) -> int:
        return self._results.count()

    # ========================================================================
    # CALLBACKS
    # ========================================================================

    def walk(self, callback: Any, *args, **kwargs) -> 'DocumentQuery':
        """
        Apply a callback to every node of the last result

        The callback receives a WalkContext followed by any extra arguments.
        It may be a plain callable or a visitor object exposing apply().
        A callback that runs a new query replaces the active cursor but not
        the cursor being walked.

        Raises:
            CallbackResolutionError: callback is neither callable nor a visitor
        """
        apply = getattr(callback, 'apply', None)
        if callable(apply):
            func = apply
        elif callable(callback):
            func = callback
        else:
            raise CallbackResolutionError(
                f"Callback `{callback!r}` is not callable and has no apply() method."
            )

        self._visit(func, args, kwargs)
        return self

    def each(self, function: Callable[..., Any], *args, **kwargs) -> 'DocumentQuery':
        """Call function(context, *args, **kwargs) for every node of the last result"""
        if not callable(function):
            raise CallbackResolutionError(f"Function `{function!r}` is not callable.")

        self._visit(function, args, kwargs)
        return self

    def _visit(self, func: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        results = self._results

        # Re-seek each step: the callback may iterate this same cursor
        for position in range(results.count()):
            element = results.seek(position)
            func(WalkContext(results, element, results.key(), self), *args, **kwargs)

    # ========================================================================
    # STRUCTURAL MUTATION
    # ========================================================================

    def _elements(self, operation: str) -> Iterator[etree._Element]:
        """Iterate the active cursor, skipping results that cannot take children"""
        for node in self._results:
            if nodes.is_element(node):
                yield node
            else:
                logger.debug(f"{operation}: skipped non-element <{nodes.node_name(node)}>")

    def clear(self) -> 'DocumentQuery':
        """Empty the text content of every matched node"""
        for node in self._results:
            nodes.set_text(node, '')
        return self

    def remove(self) -> 'DocumentQuery':
        """
        Detach every matched node from the document

        Raises:
            StructuralError: a matched node has no parent (the root element)
        """
        for node in self._results:
            nodes.detach(node)
        logger.debug(f"remove: detached {self._results.count()} nodes")
        return self

    def append(self, content: nodes.Content) -> 'DocumentQuery':
        """Append a copy of content inside every matched element"""
        template = nodes.adopt(content)

        for node in self._elements('append'):
            node.append(nodes.clone(template))
        return self

    def append_to(self, expression: str) -> 'DocumentQuery':
        """Append copies of the matched nodes to every node of expression"""
        for destination in self.path(expression, return_cursor=True):
            if not nodes.is_element(destination):
                continue
            for node in self._results:
                nodes.append_copy(destination, node)
        return self

    def _first_element_child(self, node: etree._Element) -> Optional[etree._Element]:
        return self.path('*[1]', return_cursor=True, context=node).item(0)

    def _prepend_into(self, node: etree._Element, inserted: etree._Element) -> None:
        first = self._first_element_child(node)
        if first is not None:
            first.addprevious(inserted)
        elif not nodes.insert_before(node, inserted):
            logger.debug(f"prepend: <{nodes.node_name(node)}> has no parent, skipped")

    def prepend(self, content: nodes.Content) -> 'DocumentQuery':
        """
        Insert a copy of content before the first element child of every
        matched element, or before the element itself when it has none
        """
        template = nodes.adopt(content)

        for node in self._elements('prepend'):
            self._prepend_into(node, nodes.clone(template))
        return self

    def prepend_to(self, expression: str) -> 'DocumentQuery':
        for destination in self.path(expression, return_cursor=True):
            if not nodes.is_element(destination):
                continue
            for node in self._results:
                if nodes.is_tree_node(node):
                    self._prepend_into(destination, nodes.clone(node))
        return self

    def before(self, content: nodes.Content) -> 'DocumentQuery':
        """
        Insert a copy of content before every matched node

        Text results get the copy in front of their text. The root element
        and attribute results are skipped.
        """
        template = nodes.adopt(content)

        for node in self._results:
            if not nodes.insert_before(node, nodes.clone(template)):
                logger.debug(f"before: <{nodes.node_name(node)}> has no siblings, skipped")
        return self

    def after(self, content: nodes.Content) -> 'DocumentQuery':
        """
        Insert a copy of content after every matched node

        Text results get the copy right behind their text. The root element
        and attribute results are skipped.
        """
        template = nodes.adopt(content)

        for node in self._results:
            if not nodes.insert_after(node, nodes.clone(template)):
                logger.debug(f"after: <{nodes.node_name(node)}> has no siblings, skipped")
        return self

    def replace(self, content: nodes.Content) -> 'DocumentQuery':
        """
        Replace every matched node with a copy of content

        Text results are dropped in favour of the copy.

        Raises:
            StructuralError: a matched node has no parent or is an attribute
        """
        template = nodes.adopt(content)

        for node in self._results:
            nodes.replace(node, nodes.clone(template))
        return self

    def copy(self, from_expression: str, to_expression: str) -> 'DocumentQuery':
        """
        Copy the nodes of from_expression into every node of to_expression

        from_expression becomes the active cursor.
        """
        destinations = self.path(to_expression, return_cursor=True)
        self.path(from_expression)

        for destination in destinations:
            if not nodes.is_element(destination):
                continue
            for node in self._results:
                nodes.append_copy(destination, node)
        return self

    # ========================================================================
    # ATTRIBUTES
    # ========================================================================

    def get_attr(self, name: str) -> List[Optional[str]]:
        """Return the value of name for every matched node, None where absent"""
        values = []
        for node in self._results:
            values.append(node.get(name) if nodes.is_element(node) else None)
        return values

    def set_attr(self, name: str, value: Any) -> 'DocumentQuery':
        for node in self._elements('set_attr'):
            node.set(name, str(value))
        return self

    def remove_attr(self, name: str) -> 'DocumentQuery':
        for node in self._elements('remove_attr'):
            if name in node.attrib:
                del node.attrib[name]
        return self

    # ========================================================================
    # MERGING
    # ========================================================================

    def merge(self, source: Union[str, bytes], from_expression: str,
              to_expression: str) -> 'DocumentQuery':
        """
        Merge nodes from another XML document into this one

        Every node selected by from_expression in source is appended to
        every element selected by to_expression in this document.

        Args:
            source: XML source of the document to merge from
            from_expression: XPath selecting the nodes to merge
            to_expression: XPath selecting the destination elements

        Raises:
            LoadError: source is not well-formed
        """
        foreign = self._parse(source)
        try:
            origins = foreign.xpath(from_expression)
        except (etree.XPathEvalError, etree.XPathSyntaxError) as e:
            raise QueryError(f"Invalid XPath expression '{from_expression}': {e}") from e

        if not isinstance(origins, list):
            raise QueryError(f"XPath expression '{from_expression}' did not select a node-set")

        merged = 0
        for destination in self.path(to_expression, return_cursor=True):
            if not nodes.is_element(destination):
                continue
            for origin in origins:
                if nodes.is_tree_node(origin):
                    destination.append(nodes.adopt(origin))
                else:
                    nodes.append_text(destination, str(origin))
                merged += 1

        logger.debug(f"merge: inserted {merged} nodes")
        return self

    # ========================================================================
    # OUTPUT
    # ========================================================================

    def _materialize(self) -> etree._ElementTree:
        wrapper = etree.Element('results')
        for node in self._results:
            nodes.append_copy(wrapper, node)
        return etree.ElementTree(wrapper)

    def _serialize(self, node: Any, declaration: bool) -> str:
        if not nodes.is_tree_node(node) and not isinstance(node, etree._ElementTree):
            return nodes.string_value(node)

        xml_str = etree.tostring(node, encoding='unicode', pretty_print=self.settings.pretty_print,
                                 with_tail=False).strip()

        if declaration:
            xml_str = f'<?xml version="{self.version}" encoding="{self.encoding}"?>\n' + xml_str

        return xml_str

    def save(self, mode: str = 'string', results: bool = False) -> Any:
        """
        Externalize the document or the last result

        Args:
            mode: 'document' (lxml tree), 'string' (markup) or 'mapping'
                (list of read-only simplified views; text, attribute and
                comment results appear as their string value)
            results: Use the active cursor's nodes instead of the whole document

        Returns:
            The tree, string or list of mappings
        """
        if mode not in SAVE_MODES:
            raise ValueError(f"Unknown save mode '{mode}', expected one of {SAVE_MODES}")

        tree = self._require_tree()

        if mode == 'document':
            return self._materialize() if results else tree

        if mode == 'string':
            if results:
                return '\n'.join(self._serialize(node, False) for node in self._results)
            return self._serialize(tree, self.settings.xml_declaration)

        if results:
            return [element_to_dict(node) if nodes.is_element(node) else nodes.string_value(node)
                    for node in self._results]
        return [element_to_dict(tree.getroot())]

    def to_string(self) -> str:
        return self.save('string')

    def __str__(self) -> str:
        return self.to_string() if self._tree is not None else ''

    def __repr__(self) -> str:
        if self._tree is None:
            return 'DocumentQuery(no document loaded)'
        return f'DocumentQuery(root=<{nodes.node_name(self.root)}>, results={self._results.count()})'
