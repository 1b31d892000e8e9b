"""Stepped controller ramps.

A ramp walks a controller through a fixed sequence of values, evenly spaced
across a duration: step *i* goes out at ``start + i * duration / n``.  Each
value may be jittered by up to ``+/- jitter`` before rounding and clamping,
so repeated passes over the same shape never sound mechanically identical.

The ramp runs as its own scheduler task.  The voice that started it keeps
going (or retires) independently; the ramp always emits exactly ``n``
messages unless the MIDI or CC toggles suppress them.

Example:
	```python
	# Mod wheel pumping while a bass note is held for one beat.
	v.ramp(voicefield.constants.MOD_WHEEL, channel=1, values=[28, 34, 40], duration=1, jitter=2)

	# A falling release curve over four beats.
	v.ramp(1, channel=1, values=voicefield.ramp.curve(64, 0, steps=9), duration=4)
	```
"""

import dataclasses
import logging
import random
import typing

import voicefield.easing
import voicefield.midi_utils
import voicefield.scheduler
import voicefield.sequence_utils


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class CcRampSpec:

	"""
	One ramp.

	Attributes:
		controller: CC number (clamped to 0-127 on send).
		channel: 1-indexed MIDI channel.
		values: Values to step through, in order.
		duration: Total ramp length in beats.
		jitter: Maximum random offset added to each value.
	"""

	controller: int
	channel: int
	values: typing.Tuple[float, ...]
	duration: float
	jitter: float = 0.0

	def __post_init__ (self) -> None:

		object.__setattr__(self, "values", tuple(self.values))

		if not self.values:
			raise ValueError("A CC ramp needs at least one value")

		if self.duration < 0:
			raise ValueError("Ramp duration cannot be negative")

		if self.jitter < 0:
			raise ValueError("Ramp jitter cannot be negative")


	@property
	def steps (self) -> int:
		return len(self.values)


class CcRamp (voicefield.scheduler.Task):

	"""Scheduler task that emits one controller value per wake."""

	def __init__ (
		self,
		spec: CcRampSpec,
		output: voicefield.midi_utils.MidiOutput,
		interval: float,
		rng: typing.Optional[random.Random] = None
	) -> None:

		"""
		Parameters:
			spec: What to send.
			output: Destination.
			interval: Seconds between steps.
			rng: Source of jitter.
		"""

		super().__init__(f"ramp cc{spec.controller}/{spec.channel}")
		self.spec = spec
		self.output = output
		self.interval = interval
		self.rng = rng or random.Random()
		self.index = 0
		self.sent: typing.List[int] = []


	@property
	def finished (self) -> bool:
		return self.index >= self.spec.steps


	def _value (self, raw: float) -> int:

		if self.spec.jitter > 0:
			raw += self.rng.uniform(-self.spec.jitter, self.spec.jitter)

		return voicefield.midi_utils.clamp_data(raw)


	def wake (self, when: float) -> typing.Optional[float]:

		if self.finished:
			return None

		value = self._value(self.spec.values[self.index])
		self.output.control_change(self.spec.controller, value, self.spec.channel)
		self.sent.append(value)
		self.index += 1

		if self.finished:
			return None

		return when + self.interval


def ramp (
	scheduler: voicefield.scheduler.Scheduler,
	output: voicefield.midi_utils.MidiOutput,
	spec: CcRampSpec,
	rng: typing.Optional[random.Random] = None
) -> CcRamp:

	"""Start *spec* now: the first value is sent immediately, the rest are scheduled."""

	interval = scheduler.beats_to_seconds(spec.duration) / spec.steps
	task = CcRamp(spec, output, interval, rng)

	now = scheduler.now
	next_when = task.wake(now)

	if next_when is not None:
		scheduler.schedule(task, next_when)

	logger.debug(f"Ramp cc{spec.controller} ch{spec.channel}: {spec.steps} steps over {spec.duration} beats")
	return task


def curve (
	start: float,
	end: float,
	steps: int,
	shape: typing.Union[str, voicefield.easing.EasingFn] = "linear"
) -> typing.List[int]:

	"""Return *steps* integer values from *start* to *end* (both included) along an easing shape."""

	if steps < 1:
		raise ValueError("A curve needs at least one step")

	if steps == 1:
		return [voicefield.sequence_utils.round_half_up(end)]

	ease = voicefield.easing.get_easing(shape)

	return [
		voicefield.sequence_utils.round_half_up(start + (end - start) * ease(i / (steps - 1)))
		for i in range(steps)
	]
