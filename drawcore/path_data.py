"""
Path data codec.

Parses SVG path data strings into absolute commands and back:
- M, L, C, Q, A and Z are kept as-is (absolute)
- H and V become L, S and T become C and Q with reflected control points
- Relative forms are resolved against the current point

Also flattens command lists into point chains for hit testing (arcs are
flattened as straight chords to their end point) and splits or removes
segments for point editing.
"""

from typing import Callable, Literal

from pydantic import BaseModel, Field

from .geometry import Point, cubic_bezier_point, quadratic_bezier_point, round3


CommandName = Literal["M", "L", "C", "Q", "A", "Z"]

# Number of values each absolute command carries
ARITY = {"M": 2, "L": 2, "C": 6, "Q": 4, "A": 7, "Z": 0}
_SOURCE_ARITY = {
    "M": 2, "L": 2, "H": 1, "V": 1, "C": 6, "S": 4,
    "Q": 4, "T": 2, "A": 7, "Z": 0,
}


class PathCommand(BaseModel):
    """One absolute path command and its numeric arguments."""
    command: CommandName
    values: list[float] = Field(default_factory=list)

    def end_point(self) -> Point | None:
        if self.command == "Z":
            return None
        return Point(self.values[-2], self.values[-1])


class PathDataError(ValueError):
    """Raised for malformed path data strings."""


class _Scanner:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def skip_separators(self):
        while self.pos < len(self.text) and (self.text[self.pos].isspace() or self.text[self.pos] == ","):
            self.pos += 1

    def at_end(self) -> bool:
        self.skip_separators()
        return self.pos >= len(self.text)

    def peek_command(self) -> str | None:
        self.skip_separators()
        if self.pos < len(self.text) and self.text[self.pos].upper() in _SOURCE_ARITY:
            return self.text[self.pos]
        return None

    def read_flag(self) -> float:
        self.skip_separators()
        if self.pos < len(self.text) and self.text[self.pos] in "01":
            self.pos += 1
            return float(self.text[self.pos - 1])
        raise PathDataError(f"Expected arc flag at position {self.pos}")

    def read_number(self) -> float:
        self.skip_separators()
        start = self.pos
        text = self.text
        if self.pos < len(text) and text[self.pos] in "+-":
            self.pos += 1
        seen_digit = False
        while self.pos < len(text) and text[self.pos].isdigit():
            self.pos += 1
            seen_digit = True
        if self.pos < len(text) and text[self.pos] == ".":
            self.pos += 1
            while self.pos < len(text) and text[self.pos].isdigit():
                self.pos += 1
                seen_digit = True
        if not seen_digit:
            raise PathDataError(f"Expected number at position {start}")
        if self.pos < len(text) and text[self.pos] in "eE":
            self.pos += 1
            if self.pos < len(text) and text[self.pos] in "+-":
                self.pos += 1
            while self.pos < len(text) and text[self.pos].isdigit():
                self.pos += 1
        return float(text[start:self.pos])


def parse_path_data(data: str) -> list[PathCommand]:
    """
    Parse an SVG path data string into absolute commands.

    Args:
        data: Path data, e.g. "M 0 0 l 10 0 q 5 5 10 0 z"

    Returns:
        List of PathCommand using only M, L, C, Q, A and Z

    Raises:
        PathDataError: If the string is malformed
    """
    scanner = _Scanner(data or "")
    commands: list[PathCommand] = []
    current = Point(0.0, 0.0)
    subpath_start = Point(0.0, 0.0)
    last_control: Point | None = None
    last_name = ""
    name: str | None = None

    while not scanner.at_end():
        explicit = scanner.peek_command()
        if explicit is not None:
            scanner.pos += 1
            name = explicit
        elif name is None or name.upper() == "Z":
            raise PathDataError(f"Expected command at position {scanner.pos}")
        elif name == "M":
            # Extra coordinate pairs after a moveto are implicit linetos
            name = "L"
        elif name == "m":
            name = "l"

        upper = name.upper()
        relative = name.islower()

        if upper == "Z":
            commands.append(PathCommand(command="Z"))
            current = subpath_start
            last_control = None
            last_name = "Z"
            continue

        if upper == "A":
            rx = scanner.read_number()
            ry = scanner.read_number()
            angle = scanner.read_number()
            large_arc = scanner.read_flag()
            sweep = scanner.read_flag()
            args = [rx, ry, angle, large_arc, sweep, scanner.read_number(), scanner.read_number()]
        else:
            args = [scanner.read_number() for _ in range(_SOURCE_ARITY[upper])]

        ox, oy = (current.x, current.y) if relative else (0.0, 0.0)

        if upper == "M":
            current = Point(args[0] + ox, args[1] + oy)
            subpath_start = current
            commands.append(PathCommand(command="M", values=[current.x, current.y]))
            last_control = None
        elif upper == "L":
            current = Point(args[0] + ox, args[1] + oy)
            commands.append(PathCommand(command="L", values=[current.x, current.y]))
            last_control = None
        elif upper == "H":
            current = Point(args[0] + ox, current.y)
            commands.append(PathCommand(command="L", values=[current.x, current.y]))
            last_control = None
        elif upper == "V":
            current = Point(current.x, args[0] + (current.y if relative else 0.0))
            commands.append(PathCommand(command="L", values=[current.x, current.y]))
            last_control = None
        elif upper in ("C", "S"):
            if upper == "C":
                c1 = Point(args[0] + ox, args[1] + oy)
                rest = args[2:]
            else:
                c1 = _reflect(last_control, current) if last_name in ("C", "S") else current
                rest = args
            c2 = Point(rest[0] + ox, rest[1] + oy)
            end = Point(rest[2] + ox, rest[3] + oy)
            commands.append(PathCommand(command="C", values=[c1.x, c1.y, c2.x, c2.y, end.x, end.y]))
            last_control = c2
            current = end
        elif upper in ("Q", "T"):
            if upper == "Q":
                c1 = Point(args[0] + ox, args[1] + oy)
                end = Point(args[2] + ox, args[3] + oy)
            else:
                c1 = _reflect(last_control, current) if last_name in ("Q", "T") else current
                end = Point(args[0] + ox, args[1] + oy)
            commands.append(PathCommand(command="Q", values=[c1.x, c1.y, end.x, end.y]))
            last_control = c1
            current = end
        else:
            end = Point(args[5] + ox, args[6] + oy)
            commands.append(PathCommand(command="A", values=args[:5] + [end.x, end.y]))
            last_control = None
            current = end
        last_name = upper

    return commands


def _reflect(control: Point | None, about: Point) -> Point:
    if control is None:
        return about
    return Point(2 * about.x - control.x, 2 * about.y - control.y)


def _format_number(value: float) -> str:
    value = round3(value)
    if value == int(value):
        return str(int(value))
    return repr(value)


def format_path_data(commands: list[PathCommand]) -> str:
    """Serialize commands back to a compact absolute path data string."""
    parts = []
    for cmd in commands:
        if cmd.command == "Z":
            parts.append("Z")
        else:
            parts.append(cmd.command + " " + " ".join(_format_number(v) for v in cmd.values))
    return " ".join(parts)


def map_points(commands: list[PathCommand], fn: Callable[[Point], Point],
               scale_x: float = 1.0, scale_y: float = 1.0) -> list[PathCommand]:
    """
    Return new commands with every coordinate passed through fn.

    Arc radii are scaled by the absolute scale factors and the sweep flag
    flips when the mapping mirrors the plane.
    """
    result = []
    for cmd in commands:
        values = list(cmd.values)
        if cmd.command == "A":
            end = fn(Point(values[5], values[6]))
            sweep = values[4]
            if scale_x * scale_y < 0:
                sweep = 1.0 - sweep
            values = [
                round3(values[0] * abs(scale_x)), round3(values[1] * abs(scale_y)),
                values[2], values[3], sweep, round3(end.x), round3(end.y),
            ]
        else:
            for i in range(0, len(values), 2):
                mapped = fn(Point(values[i], values[i + 1]))
                values[i] = round3(mapped.x)
                values[i + 1] = round3(mapped.y)
        result.append(PathCommand(command=cmd.command, values=values))
    return result


def flatten_path(commands: list[PathCommand], steps: int = 20) -> list[tuple[list[Point], bool]]:
    """
    Flatten commands into subpaths of points.

    Curves are sampled at `steps` intervals; arcs become chords.

    Returns:
        List of (points, closed) per subpath
    """
    subpaths: list[tuple[list[Point], bool]] = []
    points: list[Point] = []
    current = Point(0.0, 0.0)
    start = current

    def finish(closed: bool):
        nonlocal points
        if points:
            subpaths.append((points, closed))
        points = []

    for cmd in commands:
        v = cmd.values
        if cmd.command == "M":
            finish(False)
            current = start = Point(v[0], v[1])
            points = [current]
        elif cmd.command == "Z":
            if points:
                points.append(start)
            finish(True)
            current = start
        else:
            if not points:
                points = [current]
            if cmd.command == "C":
                c1, c2, end = Point(v[0], v[1]), Point(v[2], v[3]), Point(v[4], v[5])
                points.extend(cubic_bezier_point(current, c1, c2, end, i / steps) for i in range(1, steps + 1))
            elif cmd.command == "Q":
                c1, end = Point(v[0], v[1]), Point(v[2], v[3])
                points.extend(quadratic_bezier_point(current, c1, end, i / steps) for i in range(1, steps + 1))
            else:
                end = Point(v[-2], v[-1])
                points.append(end)
            current = end
    finish(False)
    return subpaths


# --- Point editing ---

def _position_before(commands: list[PathCommand], index: int) -> tuple[Point, Point]:
    """(current point, subpath start) just before commands[index] runs."""
    current = Point(0.0, 0.0)
    start = current
    for cmd in commands[:index]:
        if cmd.command == "M":
            current = start = cmd.end_point()
        elif cmd.command == "Z":
            current = start
        else:
            current = cmd.end_point()
    return current, start


def _lerp(a: Point, b: Point, t: float) -> Point:
    return Point(a.x + (b.x - a.x) * t, a.y + (b.y - a.y) * t)


def _xy(*points: Point) -> list[float]:
    return [round3(v) for p in points for v in (p.x, p.y)]


def split_segment(commands: list[PathCommand], index: int, t: float = 0.5,
                  point: Point | None = None) -> list[PathCommand]:
    """
    Return new commands with the segment at `index` split in two.

    Lines split at `point`, or at t along the segment when no point is
    given. Cubic and quadratic curves split at t (de Casteljau), so the
    drawn outline is unchanged. A closing Z gets a line to the new point
    inserted in front of it.

    Raises:
        PathDataError: If `index` does not name an L, C, Q or Z segment,
            or t is not strictly between 0 and 1
    """
    if index <= 0 or index >= len(commands):
        raise PathDataError(f"No segment at index {index}")
    if not 0 < t < 1:
        raise PathDataError(f"Split parameter must be between 0 and 1, got {t}")
    cmd = commands[index]
    current, start = _position_before(commands, index)
    v = cmd.values

    if cmd.command == "L":
        end = Point(v[0], v[1])
        mid = point or _lerp(current, end, t)
        pieces = [PathCommand(command="L", values=_xy(mid)), PathCommand(command="L", values=_xy(end))]
    elif cmd.command == "Z":
        mid = point or _lerp(current, start, t)
        pieces = [PathCommand(command="L", values=_xy(mid)), cmd]
    elif cmd.command == "C":
        p1, p2, p3 = Point(v[0], v[1]), Point(v[2], v[3]), Point(v[4], v[5])
        q0, q1, q2 = _lerp(current, p1, t), _lerp(p1, p2, t), _lerp(p2, p3, t)
        r0, r1 = _lerp(q0, q1, t), _lerp(q1, q2, t)
        s = _lerp(r0, r1, t)
        pieces = [
            PathCommand(command="C", values=_xy(q0, r0, s)),
            PathCommand(command="C", values=_xy(r1, q2, p3)),
        ]
    elif cmd.command == "Q":
        p1, p2 = Point(v[0], v[1]), Point(v[2], v[3])
        q0, q1 = _lerp(current, p1, t), _lerp(p1, p2, t)
        s = _lerp(q0, q1, t)
        pieces = [
            PathCommand(command="Q", values=_xy(q0, s)),
            PathCommand(command="Q", values=_xy(q1, p2)),
        ]
    else:
        raise PathDataError(f"Cannot split a {cmd.command} segment")
    return [*commands[:index], *pieces, *commands[index + 1:]]


def remove_segment(commands: list[PathCommand], index: int) -> list[PathCommand]:
    """
    Return new commands without the point drawn by commands[index].

    The opening M and closing Z commands stay, and a path keeps at least
    one segment after its M.

    Raises:
        PathDataError: If the command at `index` cannot be removed
    """
    if index <= 0 or index >= len(commands):
        raise PathDataError(f"No removable point at index {index}")
    if commands[index].command == "Z":
        raise PathDataError("The closing command cannot be removed")
    if len(commands) <= 2:
        raise PathDataError("A path needs at least one segment")
    return [*commands[:index], *commands[index + 1:]]
