"""Read and write BYOND DMI icon files.

A DMI file is an ordinary PNG whose ``Description`` text chunk carries the
icon metadata::

    # BEGIN DMI
    version = 4.0
        width = 32
        height = 32
    state = "idle"
        dirs = 4
        frames = 2
        delay = 1,2
    # END DMI

The pixels form a grid of ``width x height`` cells filled row by row with
every state's images in turn.  Inside a state the images are frame-major,
direction-minor, directions following ``DIR_ORDERING``.
"""

from __future__ import annotations

import dataclasses
import io
import math
import re
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

import numpy as np
from PIL import Image, PngImagePlugin

from dmi_toolbox.core.exceptions import CodecError, ToolError

DEFAULT_VERSION = "4.0"
DEFAULT_ICON_SIZE = 32

_DESCRIPTION_KEY = "Description"
_HEADER = "# BEGIN DMI"
_FOOTER = "# END DMI"
_VALID_DIRS = frozenset({1, 4, 8})
_ESCAPED = re.compile(r'\\(["\\])')
_NEEDS_ESCAPE = re.compile(r'(["\\])')


class Direction(IntEnum):
    """BYOND direction flags."""

    NORTH = 1
    SOUTH = 2
    EAST = 4
    WEST = 8
    NORTHEAST = 5
    NORTHWEST = 9
    SOUTHEAST = 6
    SOUTHWEST = 10


# Direction stored in each image slot of a frame.
DIR_ORDERING: tuple[Direction, ...] = (
    Direction.SOUTH,
    Direction.NORTH,
    Direction.EAST,
    Direction.WEST,
    Direction.SOUTHEAST,
    Direction.SOUTHWEST,
    Direction.NORTHEAST,
    Direction.NORTHWEST,
)


@dataclass(frozen=True)
class IconState:
    """A named animation inside a DMI icon.

    Attributes:
        name: State name; several states may share one.
        dirs: Number of facing variants (1, 4 or 8).
        frames: Number of animation frames.
        images: ``dirs * frames`` RGBA images, frame-major.
        delay: Per-frame delays in ticks, ``None`` when unset.
        loop: Number of times the animation plays, 0 for forever.
        rewind: Play the animation backwards after reaching the end.
        movement: State is used while the atom moves.
        hotspot: Raw hotspot coordinates, ``None`` when unset.
        unknown_settings: Any other ``key = value`` pair, kept verbatim.
    """

    name: str
    dirs: int = 1
    frames: int = 1
    images: tuple[Image.Image, ...] = ()
    delay: tuple[float, ...] | None = None
    loop: int = 0
    rewind: bool = False
    movement: bool = False
    hotspot: tuple[int, ...] | None = None
    unknown_settings: dict[str, str] = field(default_factory=dict)

    # Unhashable: images and unknown_settings are mutable.
    __hash__ = None  # type: ignore[assignment]

    def get_image(self, direction: Direction, frame: int) -> Image.Image:
        """Return the image for *direction* at the 1-based *frame*.

        Raises:
            CodecError: If the state has no such direction or frame.
        """
        available = DIR_ORDERING[: self.dirs]
        if direction not in available:
            label = direction.name if isinstance(direction, Direction) else direction
            msg = f"State '{self.name}' has no direction {label} ({self.dirs} dirs)"
            raise CodecError(msg)
        if not 1 <= frame <= self.frames:
            msg = f"State '{self.name}' has no frame {frame} ({self.frames} frames)"
            raise CodecError(msg)

        index = (frame - 1) * self.dirs + available.index(direction)
        try:
            return self.images[index]
        except IndexError as exc:
            msg = f"State '{self.name}' is missing image {index} of {self.dirs * self.frames}"
            raise CodecError(msg) from exc


@dataclass(frozen=True)
class Icon:
    """A decoded DMI file: icon size plus its ordered states."""

    width: int = DEFAULT_ICON_SIZE
    height: int = DEFAULT_ICON_SIZE
    states: tuple[IconState, ...] = ()
    version: str = DEFAULT_VERSION

    __hash__ = None  # type: ignore[assignment]

    @property
    def state_names(self) -> list[str]:
        """Names of all states, in file order."""
        return [state.name for state in self.states]


# ── Decoding ──────────────────────────────────────────────────────────────


def decode_dmi(data: bytes) -> Icon:
    """Decode the bytes of a DMI file.

    Args:
        data: Complete file contents.

    Returns:
        The decoded ``Icon``.

    Raises:
        CodecError: If the data is not a PNG, carries no DMI metadata, or the
            metadata does not match the pixel grid.
    """
    try:
        sheet = Image.open(io.BytesIO(data))
        sheet.load()
    except Exception as exc:
        msg = "Data is not a readable PNG image"
        raise CodecError(msg) from exc

    if sheet.format != "PNG":
        msg = f"Expected a PNG image, got {sheet.format}"
        raise CodecError(msg)

    description = sheet.text.get(_DESCRIPTION_KEY)
    if description is None:
        msg = "PNG has no DMI 'Description' chunk"
        raise CodecError(msg)

    header, state_specs = _parse_description(description)
    version = header.get("version", DEFAULT_VERSION)
    width = _parse_int(header.get("width", str(DEFAULT_ICON_SIZE)), "width")
    height = _parse_int(header.get("height", str(DEFAULT_ICON_SIZE)), "height")
    if width <= 0 or height <= 0:
        msg = f"Icon size must be positive, got {width}x{height}"
        raise CodecError(msg)

    pixels = np.asarray(sheet.convert("RGBA"))
    columns = pixels.shape[1] // width
    capacity = columns * (pixels.shape[0] // height)

    states: list[IconState] = []
    cursor = 0
    for name, settings in state_specs:
        state = _parse_state(name, settings)
        count = state.dirs * state.frames
        if cursor + count > capacity:
            msg = (
                f"Sheet of {sheet.width}x{sheet.height} px holds {capacity} cells, "
                f"state '{name}' needs cells {cursor}-{cursor + count - 1}"
            )
            raise CodecError(msg)
        images = tuple(_cut_cell(pixels, cursor + i, columns, width, height) for i in range(count))
        states.append(dataclasses.replace(state, images=images))
        cursor += count

    return Icon(width=width, height=height, states=tuple(states), version=version)


def _parse_description(text: str) -> tuple[dict[str, str], list[tuple[str, dict[str, str]]]]:
    """Split the metadata block into header settings and per-state settings."""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines or lines[0] != _HEADER:
        msg = f"DMI metadata must start with '{_HEADER}'"
        raise CodecError(msg)

    header: dict[str, str] = {}
    states: list[tuple[str, dict[str, str]]] = []
    for line in lines[1:]:
        if line == _FOOTER:
            break
        key, sep, value = line.partition("=")
        if not sep:
            msg = f"Malformed DMI metadata line: {line!r}"
            raise CodecError(msg)
        key, value = key.strip(), value.strip()
        if key == "state":
            states.append((_unquote(value), {}))
        elif states:
            states[-1][1][key] = value
        else:
            header[key] = value
    else:
        msg = f"DMI metadata is missing '{_FOOTER}'"
        raise CodecError(msg)

    return header, states


def _parse_state(name: str, settings: dict[str, str]) -> IconState:
    """Build an image-less ``IconState`` from its raw settings."""
    remaining = dict(settings)

    dirs = _parse_int(remaining.pop("dirs", "1"), "dirs")
    if dirs not in _VALID_DIRS:
        msg = f"State '{name}' has {dirs} dirs, expected one of {sorted(_VALID_DIRS)}"
        raise CodecError(msg)
    frames = _parse_int(remaining.pop("frames", "1"), "frames")
    if frames < 1:
        msg = f"State '{name}' must have at least one frame, got {frames}"
        raise CodecError(msg)

    delay = None
    if "delay" in remaining:
        delay = tuple(_parse_float(part, "delay") for part in remaining.pop("delay").split(","))
    hotspot = None
    if "hotspot" in remaining:
        hotspot = tuple(_parse_int(part, "hotspot") for part in remaining.pop("hotspot").split(","))

    return IconState(
        name=name,
        dirs=dirs,
        frames=frames,
        delay=delay,
        loop=_parse_int(remaining.pop("loop", "0"), "loop"),
        rewind=_parse_int(remaining.pop("rewind", "0"), "rewind") != 0,
        movement=_parse_int(remaining.pop("movement", "0"), "movement") != 0,
        hotspot=hotspot,
        unknown_settings=remaining,
    )


def _cut_cell(pixels: np.ndarray, index: int, columns: int, width: int, height: int) -> Image.Image:
    """Copy cell *index* of the sheet into a new image."""
    top = (index // columns) * height
    left = (index % columns) * width
    return Image.fromarray(pixels[top : top + height, left : left + width].copy())


def _parse_int(value: str, key: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        msg = f"Invalid integer for '{key}': {value!r}"
        raise CodecError(msg) from exc


def _parse_float(value: str, key: str) -> float:
    try:
        return float(value.strip())
    except ValueError as exc:
        msg = f"Invalid number for '{key}': {value!r}"
        raise CodecError(msg) from exc


def _unquote(value: str) -> str:
    if len(value) < 2 or not (value.startswith('"') and value.endswith('"')):
        msg = f"State name must be quoted, got {value!r}"
        raise CodecError(msg)
    return _ESCAPED.sub(r"\1", value[1:-1])


# ── Encoding ──────────────────────────────────────────────────────────────


def encode_dmi(icon: Icon) -> bytes:
    """Encode *icon* as DMI file bytes.

    Images are laid out on a near-square grid of ``ceil(sqrt(n))`` columns.

    Raises:
        CodecError: If the icon size is not positive, a state's image count
            does not match ``dirs * frames``, or an image is not icon-sized.
    """
    if icon.width <= 0 or icon.height <= 0:
        msg = f"Icon size must be positive, got {icon.width}x{icon.height}"
        raise CodecError(msg)

    for state in icon.states:
        if len(state.images) != state.dirs * state.frames:
            msg = (
                f"State '{state.name}' has {len(state.images)} images, "
                f"expected {state.dirs} dirs x {state.frames} frames"
            )
            raise CodecError(msg)
        for image in state.images:
            if image.size != (icon.width, icon.height):
                msg = (
                    f"State '{state.name}' has a {image.width}x{image.height} image "
                    f"in a {icon.width}x{icon.height} icon"
                )
                raise CodecError(msg)

    images = [image for state in icon.states for image in state.images]
    columns = max(1, math.ceil(math.sqrt(len(images))))
    rows = max(1, math.ceil(len(images) / columns))

    sheet = Image.new("RGBA", (columns * icon.width, rows * icon.height), (0, 0, 0, 0))
    for index, image in enumerate(images):
        left = (index % columns) * icon.width
        top = (index // columns) * icon.height
        sheet.paste(image.convert("RGBA"), (left, top))

    info = PngImagePlugin.PngInfo()
    info.add_text(_DESCRIPTION_KEY, _describe(icon), zip=True)

    buffer = io.BytesIO()
    sheet.save(buffer, format="PNG", pnginfo=info)
    return buffer.getvalue()


def _describe(icon: Icon) -> str:
    """Render the ``Description`` metadata block."""
    lines = [
        _HEADER,
        f"version = {icon.version}",
        f"\twidth = {icon.width}",
        f"\theight = {icon.height}",
    ]
    for state in icon.states:
        lines.append(f"state = {_quote(state.name)}")
        lines.append(f"\tdirs = {state.dirs}")
        lines.append(f"\tframes = {state.frames}")
        if state.delay is not None:
            lines.append("\tdelay = " + ",".join(_format_number(d) for d in state.delay))
        if state.loop:
            lines.append(f"\tloop = {state.loop}")
        if state.rewind:
            lines.append("\trewind = 1")
        if state.movement:
            lines.append("\tmovement = 1")
        if state.hotspot is not None:
            lines.append("\thotspot = " + ",".join(str(v) for v in state.hotspot))
        for key, value in state.unknown_settings.items():
            lines.append(f"\t{key} = {value}")
    lines.append(_FOOTER)
    return "\n".join(lines) + "\n"


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _quote(name: str) -> str:
    return '"' + _NEEDS_ESCAPE.sub(r"\\\1", name) + '"'


# ── File helpers ──────────────────────────────────────────────────────────


def load_dmi(path: Path) -> Icon:
    """Read and decode the DMI file at *path*.

    Raises:
        ToolError: If the file cannot be read.
        CodecError: If the file is not a valid DMI.
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        msg = f"DMI file '{path}' could not be opened"
        raise ToolError(msg) from exc

    try:
        return decode_dmi(data)
    except CodecError as exc:
        msg = f"'{path}' is not a valid DMI file: {exc}"
        raise CodecError(msg) from exc


def save_dmi(icon: Icon, path: Path) -> None:
    """Encode *icon* and write it to *path* in a single write.

    Raises:
        CodecError: If the icon cannot be encoded.
        ToolError: If the file cannot be written.
    """
    data = encode_dmi(icon)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        msg = f"Failed to write DMI file to '{path}'"
        raise ToolError(msg) from exc
