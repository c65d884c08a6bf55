"""
Unit tests for the path data codec.
"""

import pytest

from drawcore.geometry import Point
from drawcore.path_data import (
    PathDataError, flatten_path, format_path_data, map_points, parse_path_data,
    remove_segment, split_segment,
)


def _summary(commands):
    return [(c.command, c.values) for c in commands]


class TestParsePathData:
    """Test parsing into absolute commands."""

    def test_horizontal_and_vertical_become_lines(self):
        commands = parse_path_data("M 10 10 h 20 v 10 z")
        assert _summary(commands) == [
            ("M", [10, 10]), ("L", [30, 10]), ("L", [30, 20]), ("Z", []),
        ]

    def test_relative_quadratic(self):
        commands = parse_path_data("m 0 0 l 10 0 q 5 5 10 0")
        assert commands[-1].command == "Q"
        assert commands[-1].values == [15, 5, 20, 0]

    def test_smooth_cubic_reflects_control(self):
        commands = parse_path_data("M 0 0 C 0 10 10 10 10 0 S 20 -10 20 0")
        assert commands[2].command == "C"
        assert commands[2].values[:2] == [10, -10]

    def test_implicit_lineto_after_moveto(self):
        commands = parse_path_data("M 0 0 10 10")
        assert _summary(commands) == [("M", [0, 0]), ("L", [10, 10])]

    def test_compact_numbers(self):
        commands = parse_path_data("M0,0L10-5")
        assert commands[1].values == [10, -5]

    def test_arc_flags(self):
        commands = parse_path_data("M 0 0 A 5 5 0 0 1 10 0")
        assert commands[1].values == [5, 5, 0, 0, 1, 10, 0]

    @pytest.mark.parametrize("data", ["M 0 0 L 5", "10 10", "M 0 0 A 5 5 0 2 1 10 0"])
    def test_malformed(self, data):
        with pytest.raises(PathDataError):
            parse_path_data(data)

    def test_empty(self):
        assert parse_path_data("") == []


class TestFormatPathData:

    def test_format_absolute(self):
        commands = parse_path_data("M 10 10 h 20 v 10.5 z")
        assert format_path_data(commands) == "M 10 10 L 30 10 L 30 20.5 Z"


class TestMapPoints:
    """Test coordinate mapping over commands."""

    def test_translate(self):
        commands = map_points(parse_path_data("M 0 0 L 10 0"), lambda p: Point(p.x + 1, p.y + 2))
        assert _summary(commands) == [("M", [1, 2]), ("L", [11, 2])]

    def test_mirror_flips_arc_sweep(self):
        commands = parse_path_data("M 0 0 A 5 5 0 0 1 10 0")
        mirrored = map_points(commands, lambda p: Point(-p.x, p.y), -1, 1)
        assert mirrored[1].values[4] == 0
        assert mirrored[1].values[5] == -10


class TestFlattenPath:
    """Test flattening into point chains."""

    def test_closed_polygon(self):
        subpaths = flatten_path(parse_path_data("M 0 0 L 10 0 L 10 10 Z"))
        assert len(subpaths) == 1
        points, closed = subpaths[0]
        assert closed
        assert points[0] == points[-1] == Point(0, 0)

    def test_curve_sampling(self):
        subpaths = flatten_path(parse_path_data("M 0 0 Q 5 10 10 0"), steps=4)
        points, closed = subpaths[0]
        assert not closed
        assert len(points) == 5
        assert points[2] == Point(5, 5)

    def test_multiple_subpaths(self):
        subpaths = flatten_path(parse_path_data("M 0 0 L 1 1 M 5 5 L 6 6"))
        assert len(subpaths) == 2


class TestPointEditing:
    """Test segment splitting and point removal."""

    def test_split_line_at_midpoint(self):
        commands = split_segment(parse_path_data("M 0 0 L 10 20"), 1)
        assert format_path_data(commands) == "M 0 0 L 5 10 L 10 20"

    def test_split_closing_segment(self):
        commands = split_segment(parse_path_data("M 0 0 L 10 0 L 10 10 Z"), 3, point=Point(0, 10))
        assert format_path_data(commands) == "M 0 0 L 10 0 L 10 10 L 0 10 Z"

    def test_split_quadratic_keeps_outline(self):
        commands = split_segment(parse_path_data("M 0 0 Q 50 100 100 0"), 1)
        assert format_path_data(commands) == "M 0 0 Q 25 50 50 50 Q 75 50 100 0"

    @pytest.mark.parametrize("data,index,t", [
        ("M 0 0 L 10 0", 0, 0.5),
        ("M 0 0 L 10 0", 2, 0.5),
        ("M 0 0 L 10 0", 1, 1.0),
        ("M 0 0 A 5 5 0 0 1 10 0", 1, 0.5),
    ])
    def test_split_rejected(self, data, index, t):
        with pytest.raises(PathDataError):
            split_segment(parse_path_data(data), index, t)

    def test_remove_point(self):
        commands = remove_segment(parse_path_data("M 0 0 L 10 0 L 10 10"), 1)
        assert format_path_data(commands) == "M 0 0 L 10 10"

    @pytest.mark.parametrize("data,index", [
        ("M 0 0 L 10 0 Z", 2),
        ("M 0 0 L 10 0", 1),
        ("M 0 0 L 10 0 L 10 10", 0),
    ])
    def test_remove_rejected(self, data, index):
        with pytest.raises(PathDataError):
            remove_segment(parse_path_data(data), index)
