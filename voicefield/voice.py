"""The per-voice context handed to every step function.

A voice is a plain function that takes a :class:`VoiceContext` (``v`` by
convention), makes its decisions, emits, and returns how many beats to sleep
before its next step:

	```python
	@engine.voice()
	def halo (v):

		if v.section not in ("intro", "axis"):
			return 4

		v.note(v.choose(HALO_NOTES), velocity=40, channel=v.channel("halo", 3), duration=1)
		return 6
	```

Everything a voice owns privately lives here: its tick counters, its wander
walks, its random number generator and a free-form ``local`` dict.
Everything it shares goes through the state bus via :meth:`VoiceContext.get`
and :meth:`VoiceContext.set`, which writes under the voice's own name so the
bus can enforce single-writer keys.
"""

import logging
import random
import typing

import voicefield.constants.pitches
import voicefield.constants.velocity
import voicefield.notes
import voicefield.ramp
import voicefield.scheduler
import voicefield.sequence_utils
import voicefield.state_bus
import voicefield.wander

if typing.TYPE_CHECKING:
	from voicefield.engine import Engine


logger = logging.getLogger(__name__)

T = typing.TypeVar("T")

Pitch = typing.Union[int, str]


class VoiceContext:

	"""State and helpers for one voice."""

	def __init__ (self, name: str, engine: "Engine", rng: random.Random) -> None:

		"""
		Parameters:
			name: The voice name; also its owner name on the state bus.
			engine: The engine the voice runs in.
			rng: This voice's own random number generator.
		"""

		self.name = name
		self.engine = engine
		self.rng = rng
		self.now: float = 0.0
		self.steps: int = 0
		self.local: typing.Dict[str, typing.Any] = {}

		self._ticks: typing.Dict[str, int] = {}
		self._wander = voicefield.wander.Wander(rng)


	# ── Shared state ──

	@property
	def bus (self) -> voicefield.state_bus.StateBus:
		return self.engine.bus


	@property
	def config (self) -> typing.Any:
		return self.engine.config


	@property
	def section (self) -> typing.Optional[str]:

		"""The current section name (None before the form starts or without a form)."""

		return self.bus.get(voicefield.state_bus.SECTION)


	@property
	def climate (self) -> float:
		return float(self.bus.get(voicefield.state_bus.CLIMATE, 0.0))


	@property
	def section_elapsed (self) -> float:

		"""Seconds since the current section began."""

		return self.now - float(self.bus.get(voicefield.state_bus.SECTION_STARTED_AT, 0.0))


	@property
	def beat (self) -> float:

		"""The current time in beats since the engine started."""

		return self.engine.scheduler.seconds_to_beats(self.now)


	def seconds (self, seconds: float) -> float:

		"""Convert *seconds* to beats at the current tempo, for voices that think in wall time."""

		return self.engine.scheduler.seconds_to_beats(seconds)


	def get (self, key: str, default: typing.Any = None) -> typing.Any:
		return self.bus.get(key, default)


	def set (self, key: str, value: typing.Any) -> None:

		"""Write a shared value as this voice (raises if another voice owns *key*)."""

		self.bus.set(key, value, owner=self.name)


	def claim (self, key: str) -> None:

		"""Become the only writer of *key*."""

		self.bus.claim(key, self.name)


	# ── Counters and choices ──

	def tick (self, key: str = "") -> int:

		"""Advance the counter *key* and return its new value (the first tick is 0)."""

		value = self._ticks.get(key, -1) + 1
		self._ticks[key] = value
		return value


	def look (self, key: str = "") -> int:

		"""Return the counter *key* without advancing it (0 before the first tick)."""

		return max(0, self._ticks.get(key, 0))


	def reset_tick (self, key: str = "") -> None:
		self._ticks.pop(key, None)


	def ring (self, items: typing.Sequence[T], key: str = "") -> T:

		"""Tick *key* and return the matching item, wrapping around."""

		return voicefield.sequence_utils.ring(items, self.tick(key))


	def choose (self, items: typing.Sequence[T]) -> T:
		return self.rng.choice(items)


	def chance (self, probability: float) -> bool:

		"""Return True with the given probability."""

		return self.rng.random() < probability


	def one_in (self, n: float) -> bool:
		return voicefield.sequence_utils.one_in(n, self.rng)


	def rrand (self, low: float, high: float) -> float:
		return self.rng.uniform(low, high)


	def wander (self, base: float, depth: float = 0.1, step: float = 0.02, key: str = "wander") -> float:

		"""Bounded random walk around *base*; see :mod:`voicefield.wander`."""

		return self._wander.wander(base, depth=depth, step=step, key=key)


	# ── Output ──

	def channel (self, name: str, default: int = 1) -> int:

		"""Resolve a named channel through the configured channel map."""

		return self.engine.channel(name, default)


	def note (self, pitch: Pitch, velocity: int = voicefield.constants.velocity.DEFAULT_VELOCITY, channel: int = 1, duration: float = 0.25) -> typing.Optional[voicefield.notes.NoteHandle]:

		"""Fire-and-forget note; its note-off runs on its own timeline."""

		return self.engine.notes.play(voicefield.constants.pitches.note(pitch), velocity, channel, duration)


	def chord (self, pitches: typing.Iterable[Pitch], velocity: int = 85, channel: int = 1, duration: float = 0.25) -> typing.List[voicefield.notes.NoteHandle]:
		return self.engine.notes.play_chord(voicefield.constants.pitches.notes(pitches), velocity, channel, duration)


	def hold (self, pitch: Pitch, velocity: int = voicefield.constants.velocity.DEFAULT_HELD_VELOCITY, channel: int = 1, duration: float = 1.0) -> typing.Optional[voicefield.notes.NoteHandle]:

		"""Held note with a pre-scheduled release; pair it with :meth:`ramp` to modulate while it sounds."""

		return self.engine.notes.hold(voicefield.constants.pitches.note(pitch), velocity, channel, duration)


	def note_on (self, pitch: Pitch, velocity: int = voicefield.constants.velocity.DEFAULT_VELOCITY, channel: int = 1) -> typing.Optional[voicefield.notes.NoteHandle]:
		return self.engine.notes.note_on(voicefield.constants.pitches.note(pitch), velocity, channel)


	def note_off (self, handle_or_pitch: typing.Union[voicefield.notes.NoteHandle, Pitch], channel: typing.Optional[int] = None) -> bool:

		if isinstance(handle_or_pitch, voicefield.notes.NoteHandle):
			return self.engine.notes.note_off(handle_or_pitch)

		return self.engine.notes.note_off(voicefield.constants.pitches.note(handle_or_pitch), channel)


	def cc (self, controller: int, value: float, channel: int = 1) -> bool:

		"""Send one controller value (gated by the MIDI and CC toggles)."""

		return self.engine.output.control_change(controller, value, channel)


	def ramp (
		self,
		controller: int,
		channel: int,
		values: typing.Sequence[float],
		duration: float,
		jitter: float = 0.0
	) -> voicefield.ramp.CcRamp:

		"""Step *controller* through *values* over *duration* beats on its own timeline."""

		spec = voicefield.ramp.CcRampSpec(
			controller = controller,
			channel = channel,
			values = tuple(values),
			duration = duration,
			jitter = jitter
		)

		return voicefield.ramp.ramp(self.engine.scheduler, self.engine.output, spec, rng=self.rng)


	def later (self, beats: float, callback: typing.Callable[[], typing.Any]) -> voicefield.scheduler.TimedCall:

		"""Run *callback* once, *beats* from now, on its own timeline."""

		return self.engine.scheduler.call_later(self.engine.scheduler.beats_to_seconds(beats), callback, name=f"{self.name} later")


	def play (self, instrument: str, **params: typing.Any) -> bool:

		"""Send a play event to the external audio engine (gated by ``play_audio``)."""

		return self.engine.audio.play(instrument, **params)


	def cue (self, name: str, *args: typing.Any) -> None:

		"""Broadcast a named cue to anything listening on the engine."""

		logger.debug(f"{self.name}: cue {name}")
		self.engine.events.emit_sync(name, *args)
