"""Curve shapes for controller ramps.

A shape maps normalised progress *t* in [0, 1] to an eased value in [0, 1],
with f(0) = 0 and f(1) = 1.  :func:`voicefield.ramp.curve` uses them to
build the value sequences that CC ramps step through, so that different
sections can "press" a controller with a different character:

	voicefield.ramp.curve(20, 110, steps=8, shape="exponential")   # late surge
	voicefield.ramp.curve(64, 0, steps=9, shape="logarithmic")     # quick release, long tail

	# Any callable works too:
	voicefield.ramp.curve(0, 127, steps=4, shape=lambda t: t ** 0.5)

Available shapes:

	"linear"       Constant rate (default).
	"ease_in"      Quadratic; slow start.
	"ease_out"     Quadratic; slow finish.
	"ease_in_out"  Hermite smoothstep S-curve.
	"exponential"  Cubic ease-in; most of the movement at the end.
	"logarithmic"  Cubic ease-out; most of the movement at the start.
	"s_curve"      Perlin smootherstep; the gentlest S-curve.
	"breath"       Half-cosine swell; symmetric and soft at both ends.
"""

from __future__ import annotations

import math
import typing


def linear (t: float) -> float:
    return t


def ease_in (t: float) -> float:
    return t * t


def ease_out (t: float) -> float:
    return 1.0 - (1.0 - t) ** 2


def ease_in_out (t: float) -> float:
    return t * t * (3.0 - 2.0 * t)


def exponential (t: float) -> float:
    """Cubic ease-in, suited to filter sweeps heard on a logarithmic ear."""
    return t ** 3


def logarithmic (t: float) -> float:
    """Cubic ease-out, suited to fades whose tail should be imperceptible."""
    return 1.0 - (1.0 - t) ** 3


def s_curve (t: float) -> float:
    """Smootherstep: zero first and second derivatives at both ends."""
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def breath (t: float) -> float:
    """Half-cosine: the shape of a slow inhale."""
    return 0.5 - 0.5 * math.cos(math.pi * t)


EasingFn = typing.Callable[[float], float]

EASING_FUNCTIONS: typing.Dict[str, EasingFn] = {
    "linear":      linear,
    "ease_in":     ease_in,
    "ease_out":    ease_out,
    "ease_in_out": ease_in_out,
    "exponential": exponential,
    "logarithmic": logarithmic,
    "s_curve":     s_curve,
    "breath":      breath,
}


def get_easing (shape: typing.Union[str, EasingFn]) -> EasingFn:
    """Return the easing function for *shape* (a registered name or any callable).

    Raises :class:`ValueError` for unknown names.
    """
    if callable(shape):
        return shape
    if shape not in EASING_FUNCTIONS:
        available = ", ".join(f'"{k}"' for k in sorted(EASING_FUNCTIONS))
        raise ValueError(
            f"Unknown easing shape {shape!r}. Available shapes: {available}"
        )
    return EASING_FUNCTIONS[shape]
