"""Pure alpha-mask logic — no CLI imports allowed.

Recolours states of a DMI icon with a mask image: every output pixel takes
the mask's RGBA scaled by the alpha of the original frame, so the frame only
contributes its silhouette.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image

from dmi_toolbox.core.datatypes import AlphaMaskResult
from dmi_toolbox.core.events import EventBus
from dmi_toolbox.core.exceptions import ToolError, ValidationError
from dmi_toolbox.tools.alpha_mask._dmi import (
    DEFAULT_VERSION,
    DIR_ORDERING,
    Icon,
    IconState,
    load_dmi,
    save_dmi,
)

logger = logging.getLogger(__name__)

_CHANNEL_MAX = np.float32(255.0)
_WIDE_MAX = 65535

# Pillow opens 16-bit greyscale PNGs in these modes; convert() clips them.
_WIDE_GREY_MODES = frozenset({"I", "I;16", "I;16B", "I;16L"})


# ── Validation ────────────────────────────────────────────────────────────


def validate_alpha_mask_params(*, input_path: Path | None, mask_path: Path | None, output_path: Path | None) -> None:
    """Validate alpha mask parameters before processing.

    Args:
        input_path: DMI file whose states are masked.
        mask_path: Image used as the mask.
        output_path: DMI file to create or append to.

    Raises:
        ValidationError: If a path is missing or points at a directory.
    """
    for label, path in (("input", input_path), ("mask", mask_path), ("output", output_path)):
        if path is None:
            msg = f"Parameter '{label}' is required"
            raise ValidationError(msg)
        if path.is_dir():
            msg = f"The {label} path must be a file, got directory '{path}'"
            raise ValidationError(msg)

    if not input_path.exists():
        msg = f"Input DMI file does not exist: '{input_path}'"
        raise ValidationError(msg)
    if not mask_path.exists():
        msg = f"Mask image does not exist: '{mask_path}'"
        raise ValidationError(msg)


# ── State selection ───────────────────────────────────────────────────────


def parse_state_names(text: str | None) -> frozenset[str]:
    """Turn a comma-separated list of state names into a set.

    An empty or missing string means "every state".  Names are taken
    verbatim, surrounding whitespace included.
    """
    if not text:
        return frozenset()
    return frozenset(text.split(","))


def select_states(states: Sequence[IconState], names: str | Iterable[str] | None = None) -> list[IconState]:
    """Return the states whose name was requested, in icon order.

    *names* is either a collection of names or a comma-separated string as
    accepted by ``parse_state_names``.  No names selects every state.
    Requested names that match no state are ignored without a warning.
    """
    wanted = parse_state_names(names) if isinstance(names, str) else frozenset(names or ())
    if not wanted:
        return list(states)
    return [state for state in states if state.name in wanted]


# ── Compositing ───────────────────────────────────────────────────────────


def load_mask(mask_path: Path) -> Image.Image:
    """Open the mask image as RGBA.

    Raises:
        ToolError: If the image cannot be opened or decoded.
    """
    try:
        with Image.open(mask_path) as img:
            if img.mode in _WIDE_GREY_MODES:
                return _narrow_grey(img).convert("RGBA")
            return img.convert("RGBA")
    except Exception as exc:
        msg = f"Mask image '{mask_path}' could not be opened"
        raise ToolError(msg) from exc


def _narrow_grey(img: Image.Image) -> Image.Image:
    """Scale 16-bit greyscale down to 8 bits, rounding to the nearest level."""
    wide = np.clip(np.asarray(img).astype(np.int64), 0, _WIDE_MAX)
    return Image.fromarray(((wide + 128) // 257).astype(np.uint8))


def composite_frame(frame: Image.Image, mask: Image.Image) -> Image.Image:
    """Paint *mask* through the alpha channel of *frame*.

    Each channel of the result is ``mask / 255 * frame_alpha / 255 * 255``,
    computed in float32 and truncated to 8 bits.  The frame's colour is
    discarded.  The mask is addressed pixel for pixel from its top-left
    corner and never resized.

    Raises:
        ToolError: If the mask is smaller than the frame.
    """
    if mask.width < frame.width or mask.height < frame.height:
        msg = (
            f"Mask image of {mask.width}x{mask.height} px is smaller than "
            f"the {frame.width}x{frame.height} px frame"
        )
        raise ToolError(msg)

    alpha = np.asarray(frame.convert("RGBA"))[:, :, 3].astype(np.float32) / _CHANNEL_MAX
    weights = np.asarray(mask)[: frame.height, : frame.width].astype(np.float32) / _CHANNEL_MAX

    pixels = weights * alpha[:, :, np.newaxis] * _CHANNEL_MAX
    return Image.fromarray(pixels.astype(np.uint8))


def mask_state_images(state: IconState, mask: Image.Image) -> tuple[Image.Image, ...]:
    """Composite every image of *state*, frame by frame in direction order."""
    images: list[Image.Image] = []
    for frame in range(1, state.frames + 1):
        for slot in range(state.dirs):
            source = state.get_image(DIR_ORDERING[slot], frame)
            images.append(composite_frame(source, mask))
    return tuple(images)


def rebuild_state(state: IconState, images: Sequence[Image.Image]) -> IconState:
    """Return a copy of *state* carrying *images* instead of its own."""
    return IconState(
        name=state.name,
        dirs=state.dirs,
        frames=state.frames,
        images=tuple(images),
        delay=state.delay,
        loop=state.loop,
        rewind=state.rewind,
        movement=state.movement,
        hotspot=state.hotspot,
        unknown_settings=dict(state.unknown_settings),
    )


# ── Output target ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FreshTarget:
    """The output file does not exist yet and will be created."""

    path: Path


@dataclass(frozen=True)
class AppendTarget:
    """The output file exists; new states go after its current ones."""

    path: Path
    existing: Icon


OutputTarget = FreshTarget | AppendTarget


def resolve_output_target(output_path: Path) -> OutputTarget:
    """Decide whether *output_path* is created or appended to.

    An existing file is read and decoded in full right away.

    Raises:
        ToolError: If the existing file cannot be read.
        CodecError: If the existing file is not a valid DMI.
    """
    if not output_path.exists():
        return FreshTarget(path=output_path)
    return AppendTarget(path=output_path, existing=load_dmi(output_path))


def build_output_icon(target: OutputTarget, new_states: Sequence[IconState], *, width: int, height: int) -> Icon:
    """Assemble the icon written to *target*.

    The size always comes from the input icon and the version is always
    ``DEFAULT_VERSION``.  Appending concatenates: states sharing a name with
    an existing one are kept side by side.
    """
    states = tuple(new_states)
    if isinstance(target, AppendTarget):
        states = target.existing.states + states
    return Icon(width=width, height=height, states=states, version=DEFAULT_VERSION)


# ── Public API ────────────────────────────────────────────────────────────


def apply_alpha_mask(
    input_path: Path,
    mask_path: Path,
    output_path: Path,
    *,
    states: str | Iterable[str] | None = None,
    event_bus: EventBus | None = None,
) -> AlphaMaskResult:
    """Mask the selected states of a DMI file and write them out.

    Args:
        input_path: DMI file whose states are masked.
        mask_path: Image providing the new colours.
        output_path: DMI file to create, or to append the states to when it
            already exists.
        states: Names of the states to mask, as a collection or a
            comma-separated string; ``None`` or empty masks all.
        event_bus: Optional event bus for progress events.

    Returns:
        An ``AlphaMaskResult`` describing the written file.

    Raises:
        ToolError: If a file cannot be read or written, or the mask is
            smaller than the icon frames.
        CodecError: If the input or existing output is not a valid DMI.
    """
    icon = load_dmi(input_path)
    mask = load_mask(mask_path)
    target = resolve_output_target(output_path)

    selected = select_states(icon.states, states)
    logger.info("Masking %d of %d states from %s", len(selected), len(icon.states), input_path)

    new_states: list[IconState] = []
    total = len(selected)
    for idx, state in enumerate(selected):
        new_states.append(rebuild_state(state, mask_state_images(state, mask)))
        logger.debug("Masked state '%s' (%d dirs, %d frames)", state.name, state.dirs, state.frames)

        if event_bus is not None:
            event_bus.emit(
                "progress",
                tool="alpha_mask",
                current=idx + 1,
                total=total,
                message=f"Masked '{state.name}' ({idx + 1}/{total})",
            )

    output_icon = build_output_icon(target, new_states, width=icon.width, height=icon.height)
    appended = isinstance(target, AppendTarget)
    if appended:
        logger.info("Appending %d states to %s", len(new_states), output_path)
    else:
        logger.info("Creating %s with %d states", output_path, len(new_states))

    save_dmi(output_icon, output_path)

    if event_bus is not None:
        event_bus.emit(
            "completed",
            tool="alpha_mask",
            message=f"Done — {len(new_states)} states written to '{output_path.name}'",
        )

    return AlphaMaskResult(
        output_path=output_path,
        states=tuple(state.name for state in new_states),
        count=len(new_states),
        total_states=len(output_icon.states),
        appended=appended,
    )


def probe_dmi(dmi_path: Path) -> dict[str, Any]:
    """Return metadata about a DMI file without masking anything.

    Args:
        dmi_path: Path to the DMI file.

    Returns:
        A dict with keys ``path``, ``version``, ``width``, ``height``,
        ``state_count`` and ``states`` (one dict per state with ``name``,
        ``dirs`` and ``frames``).
    """
    icon = load_dmi(dmi_path)
    return {
        "path": dmi_path.resolve(),
        "version": icon.version,
        "width": icon.width,
        "height": icon.height,
        "state_count": len(icon.states),
        "states": [{"name": s.name, "dirs": s.dirs, "frames": s.frames} for s in icon.states],
    }

