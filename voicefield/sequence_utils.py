import math
import random
import typing

T = typing.TypeVar("T")


def generate_euclidean_sequence (steps: int, pulses: int) -> typing.List[int]:

	"""
	Spread *pulses* hits as evenly as possible across *steps*, starting on a hit.

	Produces the same necklaces as Bjorklund's algorithm (``spread 3, 8`` is
	``x..x..x.``), rotated so that step 0 always sounds.
	"""

	if steps <= 0:
		raise ValueError("Steps must be positive")

	if pulses < 0:
		raise ValueError("Pulses cannot be negative")

	if pulses > steps:
		raise ValueError(f"Pulses ({pulses}) cannot be greater than steps ({steps})")

	if pulses == 0:
		return [0] * steps

	# Bresenham placement gives the Euclidean necklace; rotate it to start on a hit.
	sequence = [1 if ((i * pulses) % steps) < pulses else 0 for i in range(steps)]
	first = sequence.index(1)

	return sequence[first:] + sequence[:first]


def clamp (value: float, low: float, high: float) -> float:

	"""Limit *value* to ``[low, high]``."""

	return max(low, min(high, value))


def clamp_int (value: float, low: int, high: int) -> int:

	"""Round half away from zero, then limit to ``[low, high]``."""

	return int(clamp(round_half_up(value), low, high))


def round_half_up (value: float) -> int:

	"""Round to the nearest integer, halves away from zero.

	Python's built-in ``round()`` rounds halves to even (``round(2.5) == 2``);
	musical odds and controller values are expected to round 2.5 up to 3.
	"""

	if value >= 0:
		return int(math.floor(value + 0.5))

	return -int(math.floor(-value + 0.5))


def one_in (n: float, rng: random.Random) -> bool:

	"""Return True with probability ``1/n`` (always False when ``n`` < 1)."""

	if n < 1:
		return False

	return rng.random() < 1.0 / n


def ring (items: typing.Sequence[T], index: int) -> T:

	"""Index into *items* cyclically (negative indices wrap too)."""

	if not items:
		raise ValueError("Cannot index into an empty ring")

	return items[index % len(items)]
