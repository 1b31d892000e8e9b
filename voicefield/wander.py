"""Bounded random walk for smoothly drifting parameters.

Every continuously varying parameter (filter cutoff, detune, amplitude,
tempo bias, the shared climate) moves through :meth:`Wander.wander` so that
nothing a listener perceives ever jumps.  Each *key* owns an independent
walk; keys are created on first use and live as long as the generator.

Per call, for a key with offset ``x``::

	t += step
	x += uniform(-depth, depth) * 0.08
	x  = clamp(x, -depth, depth)
	return base + x

So the result always lies within ``depth`` of ``base`` and, for a fixed
base, moves by at most ``0.08 * depth`` per call.
"""

import dataclasses
import random
import typing


DRIFT = 0.08
"""Fraction of ``depth`` a walk may move in one call."""


@dataclasses.dataclass
class WanderState:

	"""Walk position for one key.

	Attributes:
		cursor: Accumulated step count (advances by ``step`` each call).
		offset: Current displacement from the base, within ``[-depth, depth]``.
	"""

	cursor: float = 0.0
	offset: float = 0.0


class Wander:

	"""Registry of keyed random walks sharing one random number generator."""

	def __init__ (self, rng: typing.Optional[random.Random] = None) -> None:

		self.rng = rng or random.Random()
		self._states: typing.Dict[str, WanderState] = {}


	def wander (self, base: float, depth: float = 0.1, step: float = 0.02, key: str = "wander") -> float:

		"""Advance the walk for *key* and return ``base`` plus its offset.

		Parameters:
			base: Centre value; may change between calls (e.g. climate-biased).
			depth: Maximum distance from *base*.
			step: Cursor increment per call (slow-time bookkeeping).
			key: Identifies the walk, so modulators never fight each other.

		Raises:
			ValueError: If *depth* is negative.
		"""

		if depth < 0:
			raise ValueError("Wander depth cannot be negative")

		state = self._states.get(key)

		if state is None:
			state = WanderState()
			self._states[key] = state

		state.cursor += step
		state.offset += self.rng.uniform(-depth, depth) * DRIFT
		state.offset = max(-depth, min(depth, state.offset))

		return base + state.offset


	__call__ = wander


	def state (self, key: str) -> typing.Optional[WanderState]:

		"""Return the walk state for *key*, or None if it has never been used."""

		return self._states.get(key)


	def keys (self) -> typing.List[str]:

		"""Return every key that has been walked."""

		return list(self._states)
