"""
Pytest configuration and shared fixtures for drawcore tests.
"""

import pytest

from drawcore import Document, EditorConfig, History, Node, Rectangle
from drawcore.events import EventBus


# ============== Core Fixtures ==============

@pytest.fixture
def config() -> EditorConfig:
    """Default editor configuration."""
    return EditorConfig()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def document(config: EditorConfig, events: EventBus) -> Document:
    """An empty document."""
    return Document(config=config, events=events)


@pytest.fixture
def history(document: Document) -> History:
    """History sharing the document's event bus."""
    return History(events=document.events, max_history=document.config.max_history)


# ============== Graph Fixtures ==============

@pytest.fixture
def node_a() -> Node:
    return Node(id="a", cx=0, cy=0, rx=20, ry=20, label="A")


@pytest.fixture
def node_b() -> Node:
    return Node(id="b", cx=100, cy=0, rx=20, ry=20, label="B")


@pytest.fixture
def two_nodes(document: Document, node_a: Node, node_b: Node) -> Document:
    """Document holding nodes A at (0, 0) and B at (100, 0), both radius 20."""
    document.add_shape(node_a)
    document.add_shape(node_b)
    return document


# ============== Shape Fixtures ==============

@pytest.fixture
def three_rectangles(document: Document) -> list[Rectangle]:
    """Rectangles 40 wide at x = 0, 50 and 200."""
    shapes = [
        Rectangle(id=f"r{i}", x=x, y=0, width=40, height=40)
        for i, x in enumerate((0, 50, 200))
    ]
    for shape in shapes:
        document.add_shape(shape)
    return shapes
