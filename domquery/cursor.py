#!/usr/bin/env python3
"""
cursor.py - Positional iteration over one XPath result

A ResultCursor holds a fixed snapshot of the nodes returned by a single
query. Later structural changes to the document never add or remove entries;
the referenced nodes themselves stay live and mutable.
"""

import logging
from typing import Any, Iterable, Iterator, List, Optional, Union

logger = logging.getLogger(__name__)


class ResultCursor:
    """
    Resettable, seekable cursor over a query result

    The position is only ever checked, never clamped: current() returns None
    once the position runs past the end and valid() turns false.
    """

    def __init__(self, nodes: Optional[Iterable[Any]] = None):
        self._nodes = tuple(nodes) if nodes is not None else ()
        self._position = 0

    # Position protocol

    @property
    def position(self) -> int:
        return self._position

    def key(self) -> int:
        """Return the current position"""
        return self._position

    def count(self) -> int:
        """Return the number of nodes in the result"""
        return len(self._nodes)

    def next(self) -> int:
        """Advance one step, returning the position before the move"""
        position = self._position
        self._position += 1
        return position

    def rewind(self) -> int:
        self._position = 0
        return self._position

    def current(self) -> Optional[Any]:
        """Return the node at the current position, or None when out of range"""
        return self.item(self._position)

    def valid(self) -> bool:
        return self.current() is not None

    def seek(self, index: int, return_node: bool = True) -> Union[Any, bool]:
        """
        Move the position to index

        Seeking to count() is allowed and leaves the cursor past the end.

        Args:
            index: New position, 0 <= index <= count()
            return_node: Return the node at the new position instead of True

        Returns:
            The node (None when index == count()) or True on success, False
            when index is out of range. The position is untouched on failure.
            None and False are both falsy, so pass return_node=False when
            the result is only used to test whether the seek succeeded.
        """
        if 0 <= index <= self.count():
            self._position = index
            return self.current() if return_node else True

        return False

    # Indexed access, independent of the position

    def item(self, index: int) -> Optional[Any]:
        """Return the node at index or None, like DOM NodeList.item()"""
        if 0 <= index < len(self._nodes):
            return self._nodes[index]
        return None

    def has_index(self, index: int) -> bool:
        return 0 <= index < len(self._nodes)

    def first(self) -> Optional[Any]:
        return self.item(0)

    def nodes(self) -> List[Any]:
        """Return the snapshot as a new list"""
        return list(self._nodes)

    def __getitem__(self, index: int) -> Any:
        if not self.has_index(index):
            raise IndexError(f'cursor index out of range: {index}')
        return self._nodes[index]

    def __setitem__(self, index: int, value: Any) -> None:
        # Results are read-only through indexing
        logger.debug(f"Ignored assignment to cursor index {index}")

    def __delitem__(self, index: int) -> None:
        logger.debug(f"Ignored deletion of cursor index {index}")

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Any]:
        """Walk the cursor through its own rewind/valid/current/next protocol"""
        self.rewind()
        while self.valid():
            yield self.current()
            self.next()

    def __repr__(self) -> str:
        return f'<ResultCursor count={self.count()} position={self._position}>'
