"""
Incremental parsing of diagram JSON while a generator is still writing it.

Both parsers are fed the whole text received so far (not a delta) and hand
back only the objects that became complete since the previous call, so a
UI can draw nodes as they arrive instead of waiting for the closing brace.

An object counts as complete once it is brace-balanced AND the next
significant character after it (`,` or `]`) has arrived; a balanced object
at the very end of the buffer waits for the next call.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .models import Graph

logger = logging.getLogger(__name__)

_WHITESPACE = " \t\r\n"
_SEPARATORS = _WHITESPACE + ","

_NODES_KEY = re.compile(r'"nodes"\s*:\s*\[')
_EDGES_KEY = re.compile(r'"edges"\s*:\s*\[')
_ELEMENTS_KEY = re.compile(r'"elements"\s*:\s*\[')


class StreamPhase(str, Enum):
    """Where the parser is in the `{"nodes": [...], "edges": [...]}` document."""
    BEFORE_NODES = "before-nodes-array"
    INSIDE_NODES = "inside-nodes-array"
    INSIDE_EDGES = "inside-edges-array"
    DONE = "done"


def find_complete_object(buffer: str, start: int = 0) -> int:
    """
    Find the end of the first brace-balanced object at or after `start`.

    Braces inside double-quoted strings are ignored and a backslash escapes
    the character after it, so `"\\""` does not end a string.

    Returns:
        Index just past the closing brace, or -1 if no object is complete yet
    """
    i = buffer.find("{", start)
    if i == -1:
        return -1

    depth = 0
    in_string = False
    escape = False
    for j in range(i, len(buffer)):
        c = buffer[j]
        if escape:
            escape = False
            continue
        if in_string:
            if c == "\\":
                escape = True
            elif c == '"':
                in_string = False
            continue
        if c == '"':
            in_string = True
        elif c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return j + 1
    return -1


def _skip(buffer: str, pos: int, chars: str) -> int:
    while pos < len(buffer) and buffer[pos] in chars:
        pos += 1
    return pos


def _scan_array(buffer: str, pos: int, final: bool) -> tuple[list[Any], int, bool]:
    """
    Decode committed objects of an array body starting at `pos`.

    Returns the decoded values, the position to resume from, and whether the
    closing `]` was reached (the position then points at it).
    """
    found: list[Any] = []
    while True:
        pos = _skip(buffer, pos, _SEPARATORS)
        if pos >= len(buffer):
            return found, pos, False
        if buffer[pos] == "]":
            return found, pos, True
        if buffer[pos] != "{":
            # Scalars and stray characters are not diagram objects
            pos += 1
            continue

        end = find_complete_object(buffer, pos)
        if end == -1:
            return found, pos, False
        if _skip(buffer, end, _WHITESPACE) >= len(buffer) and not final:
            return found, pos, False

        try:
            found.append(json.loads(buffer[pos:end]))
        except ValueError:
            logger.debug("Discarding unparsable stream slice at offset %d", pos)
        pos = end


@dataclass
class GraphStreamUpdate:
    """Objects committed by a single `feed` call."""
    nodes: list[dict[str, Any]] = field(default_factory=list)
    edges: list[dict[str, Any]] = field(default_factory=list)
    phase: StreamPhase = StreamPhase.BEFORE_NODES


class StreamingGraphParser:
    """
    Incremental parser for `{"nodes": [...], "edges": [...]}` documents.

    Usage:
        parser = StreamingGraphParser()
        for text_so_far in chunks:
            update = parser.feed(text_so_far)
            render(update.nodes, update.edges)
        graph = parser.snapshot()

    `nodes` and `edges` hold everything committed so far. Text before the
    cursor is never scanned again; a buffer shorter than the cursor means the
    caller started over, and the parser resets.
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.nodes: list[dict[str, Any]] = []
        self.edges: list[dict[str, Any]] = []
        self.phase = StreamPhase.BEFORE_NODES
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    def feed(self, buffer: str, final: bool = False) -> GraphStreamUpdate:
        """
        Scan the text received so far.

        Args:
            buffer: Entire text so far
            final: The stream has ended; commit a balanced trailing object
                without waiting for its separator

        Returns:
            GraphStreamUpdate with the objects committed by this call
        """
        if len(buffer) < self._cursor:
            logger.debug("Stream buffer shrank below cursor %d, resetting", self._cursor)
            self.reset()

        update = GraphStreamUpdate(phase=self.phase)

        if self.phase == StreamPhase.BEFORE_NODES:
            match = _NODES_KEY.search(buffer)
            if match is None:
                return update
            self._cursor = match.end()
            self.phase = StreamPhase.INSIDE_NODES

        while self.phase in (StreamPhase.INSIDE_NODES, StreamPhase.INSIDE_EDGES):
            objects, pos, closed = _scan_array(buffer, self._cursor, final)
            self._cursor = pos

            if self.phase == StreamPhase.INSIDE_NODES:
                for obj in objects:
                    if isinstance(obj, dict) and "id" in obj:
                        update.nodes.append(obj)
                    else:
                        logger.debug("Discarding streamed node without id")
            else:
                for obj in objects:
                    if isinstance(obj, dict) and "source" in obj and "target" in obj:
                        update.edges.append(obj)
                    else:
                        logger.debug("Discarding streamed edge without source/target")

            if not closed:
                break

            if self.phase == StreamPhase.INSIDE_EDGES:
                self._cursor = pos + 1
                self.phase = StreamPhase.DONE
                break

            # Nodes array closed: wait for the edges array or the end of the object
            match = _EDGES_KEY.search(buffer, pos + 1)
            if match is not None:
                self._cursor = match.end()
                self.phase = StreamPhase.INSIDE_EDGES
                continue
            after = _skip(buffer, pos + 1, _WHITESPACE)
            if after < len(buffer) and buffer[after] == "}":
                self._cursor = after + 1
                self.phase = StreamPhase.DONE
            break

        self.nodes.extend(update.nodes)
        self.edges.extend(update.edges)
        update.phase = self.phase
        return update

    def snapshot(self) -> Graph:
        """Build a graph from everything committed so far.

        Edges whose endpoints have not streamed in yet are left out.
        """
        return Graph.from_json_dict({"nodes": self.nodes, "edges": self.edges})


def parse_graph_buffer(buffer: str, final: bool = False) -> GraphStreamUpdate:
    """One-shot parse of a (possibly incomplete) graph document."""
    return StreamingGraphParser().feed(buffer, final=final)


@dataclass
class ElementsStreamUpdate:
    """Elements committed by a single `feed` call."""
    elements: list[dict[str, Any]] = field(default_factory=list)
    done: bool = False


class StreamingElementsParser:
    """
    Incremental parser for whiteboard skeleton arrays.

    Accepts a bare `[ {...}, ... ]` or an object wrapping it as
    `{"elements": [ ... ]}`. Elements without a `type` are discarded.
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.elements: list[dict[str, Any]] = []
        self.done = False
        self._cursor = 0
        self._started = False

    def feed(self, buffer: str, final: bool = False) -> ElementsStreamUpdate:
        if len(buffer) < self._cursor:
            logger.debug("Elements buffer shrank below cursor %d, resetting", self._cursor)
            self.reset()
        if self.done:
            return ElementsStreamUpdate(done=True)

        if not self._started:
            start = _elements_array_start(buffer)
            if start is None:
                return ElementsStreamUpdate()
            self._cursor = start
            self._started = True

        objects, pos, closed = _scan_array(buffer, self._cursor, final)
        new = []
        for obj in objects:
            if isinstance(obj, dict) and "type" in obj:
                new.append(obj)
            else:
                logger.debug("Discarding streamed element without type")

        self._cursor = pos + 1 if closed else pos
        self.done = closed
        self.elements.extend(new)
        return ElementsStreamUpdate(elements=new, done=closed)


def _elements_array_start(buffer: str) -> Optional[int]:
    """Index just inside the elements array, or None if it has not begun."""
    first = _skip(buffer, 0, _WHITESPACE)
    if first >= len(buffer):
        return None
    if buffer[first] == "{":
        match = _ELEMENTS_KEY.search(buffer, first)
        return match.end() if match else None
    bracket = buffer.find("[", first)
    return bracket + 1 if bracket != -1 else None


def parse_elements_buffer(buffer: str, final: bool = False) -> ElementsStreamUpdate:
    """One-shot parse of a (possibly incomplete) elements array."""
    return StreamingElementsParser().feed(buffer, final=final)
