"""Probability trigger whose rate fades out over a time window.

Rare events (a chime during sleep, say) should become rarer as a piece
settles, then stop entirely.  The rate is derived in three stages:

1. **Fade factor.** ``fade = clamp(1 - elapsed / window, 0, 1)``, where
   *elapsed* counts from a reference epoch (typically the moment the
   terminal section began).
2. **Odds.** Base odds ("one in N") are rounded, then stretched by up to 4x
   as the fade shrinks: ``odds = round(odds + (1 - fade) * odds * 3)``,
   never below 2.
3. **Suppression.** At or below ``SUPPRESS_BELOW`` the trigger is not
   evaluated at all, so the piece quiets monotonically instead of ending on
   one last random spike.

Example:
	```python
	chime = voicefield.trigger.FadingTrigger(
		base_odds = voicefield.trigger.odds_from_chance(0.14),   # ~1 in 7
		window = 25 * 60,
	)
	chime.start(now)

	if chime.fire(v.now, v.rng):
		...
	```
"""

import random
import typing

import voicefield.sequence_utils


SUPPRESS_BELOW = 0.02
"""Fade factor at or below which the trigger never fires."""

MAX_RARITY = 4.0
"""Odds multiplier reached when the fade factor hits zero."""

MIN_ODDS = 2
"""Smallest odds the policy will ever evaluate (one in two)."""


def odds_from_chance (chance: float) -> float:

	"""Convert a per-cycle chance (e.g. 0.14) into "one in N" odds."""

	if chance <= 0:
		raise ValueError("Chance must be positive")

	return 1.0 / chance


def fade_factor (elapsed: float, window: float) -> float:

	"""Return ``1 - elapsed/window`` clamped to ``[0, 1]``.

	Raises:
		ValueError: If *window* is not positive.
	"""

	if window <= 0:
		raise ValueError("Fade window must be positive")

	return voicefield.sequence_utils.clamp(1.0 - (elapsed / window), 0.0, 1.0)


def effective_odds (base_odds: float, fade: float) -> int:

	"""Return the "one in N" odds after stretching by the fade (up to ``MAX_RARITY``x)."""

	odds = voicefield.sequence_utils.round_half_up(base_odds)
	odds = voicefield.sequence_utils.round_half_up(odds + (1.0 - fade) * odds * (MAX_RARITY - 1.0))

	return max(odds, MIN_ODDS)


def effective_rate (base_odds: float, fade: float) -> float:

	"""Return the per-cycle firing probability, or 0.0 once the fade is suppressed."""

	if fade <= SUPPRESS_BELOW:
		return 0.0

	return 1.0 / effective_odds(base_odds, fade)


class FadingTrigger:

	"""A Bernoulli trigger whose odds stretch as time passes since an epoch."""

	def __init__ (self, base_odds: float, window: float, epoch: typing.Optional[float] = None) -> None:

		"""
		Parameters:
			base_odds: "One in N" odds while fully faded in.
			window: Seconds after the epoch at which the trigger falls silent.
			epoch: Reference time; while unset, elapsed time counts as zero.
		"""

		if base_odds <= 0:
			raise ValueError("Base odds must be positive")

		if window <= 0:
			raise ValueError("Fade window must be positive")

		self.base_odds = base_odds
		self.window = window
		self.epoch = epoch


	def start (self, epoch: float) -> None:

		"""Set the reference time if it has not been set already."""

		if self.epoch is None:
			self.epoch = epoch


	def reset (self) -> None:

		"""Forget the reference time (the trigger is fully faded in again)."""

		self.epoch = None


	def elapsed (self, now: float) -> float:

		"""Return seconds since the epoch (0.0 while no epoch is set)."""

		if self.epoch is None:
			return 0.0

		return max(0.0, now - self.epoch)


	def fade (self, now: float) -> float:

		"""Return the fade factor at *now*."""

		return fade_factor(self.elapsed(now), self.window)


	def rate (self, now: float) -> float:

		"""Return the firing probability at *now*."""

		return effective_rate(self.base_odds, self.fade(now))


	def fire (self, now: float, rng: random.Random) -> bool:

		"""Run one trial at *now*; suppressed trials draw no random number."""

		probability = self.rate(now)

		if probability <= 0.0:
			return False

		return rng.random() < probability
