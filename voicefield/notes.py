"""Note lifecycle: every note-on gets exactly one note-off.

Two ways to sound a note:

- **Fire-and-forget** (:meth:`NoteManager.play`): the note-on goes out now
  and the note-off is scheduled as its own one-shot task.  The calling
  voice never waits for it and may take several more steps (or be retired)
  before the note ends.
- **Held** (:meth:`NoteManager.note_on` / :meth:`NoteManager.note_off`, or
  :meth:`NoteManager.hold`): the voice keeps a :class:`NoteHandle` and
  releases it explicitly, typically after modulating it with a CC ramp.
  ``hold()`` also pre-schedules the release, decoupled in the same way, so
  the note ends even if the voice changes behaviour.

A handle is released at most once; whichever of the scheduled off, an
explicit off, :meth:`NoteManager.flush` or :meth:`NoteManager.panic` gets
there first wins and the others become no-ops.
"""

import dataclasses
import itertools
import logging
import typing

import voicefield.midi_utils
import voicefield.scheduler


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class NoteEvent:

	"""A note to play for a fixed duration (in beats). Channels are 1-16."""

	pitch: int
	velocity: int
	channel: int
	duration: float


@dataclasses.dataclass
class NoteHandle:

	"""
	A sounding note.

	Attributes:
		id: Unique id within the manager.
		pitch: Clamped MIDI pitch.
		channel: Clamped 1-indexed channel.
		velocity: Clamped velocity.
		started_at: Scheduler time of the note-on (seconds).
		off_task: The pre-scheduled release, if any.
		released: True once the note-off has been handled.
	"""

	id: int
	pitch: int
	channel: int
	velocity: int
	started_at: float
	off_task: typing.Optional[voicefield.scheduler.TimedCall] = None
	released: bool = False


class NoteManager:

	"""Pairs note-ons with note-offs and owns the panic path."""

	def __init__ (
		self,
		scheduler: voicefield.scheduler.Scheduler,
		output: voicefield.midi_utils.MidiOutput,
		channels: typing.Optional[typing.Iterable[int]] = None
	) -> None:

		"""
		Parameters:
			scheduler: Where decoupled note-offs are scheduled.
			output: The MIDI output.
			channels: Channels covered by :meth:`panic`.  When omitted, panic
				covers every channel used so far.
		"""

		self.scheduler = scheduler
		self.output = output
		self.channels: typing.List[int] = sorted({voicefield.midi_utils.clamp_channel(c) for c in (channels or [])})
		self._sounding: typing.Dict[int, NoteHandle] = {}
		self._ids = itertools.count(1)


	@property
	def sounding (self) -> typing.List[NoteHandle]:

		"""Notes that have been started and not yet released."""

		return list(self._sounding.values())


	def panic_channels (self) -> typing.List[int]:

		"""Return the channels :meth:`panic` will address."""

		if self.channels:
			return list(self.channels)

		return sorted(self.output.channels_used)


	def note_on (self, pitch: int, velocity: int, channel: int) -> typing.Optional[NoteHandle]:

		"""Start a held note; returns None (and sends nothing) when MIDI is disabled."""

		pitch = voicefield.midi_utils.clamp_data(pitch)
		velocity = voicefield.midi_utils.clamp_data(velocity)
		channel = voicefield.midi_utils.clamp_channel(channel)

		if not self.output.note_on(pitch, velocity, channel):
			return None

		handle = NoteHandle(
			id = next(self._ids),
			pitch = pitch,
			channel = channel,
			velocity = velocity,
			started_at = self.scheduler.now
		)

		self._sounding[handle.id] = handle
		return handle


	def note_off (self, handle_or_pitch: typing.Union[NoteHandle, int], channel: typing.Optional[int] = None) -> bool:

		"""Release a note by handle, or the oldest sounding note matching (pitch, channel).

		Returns True if a note-off was sent.
		"""

		if isinstance(handle_or_pitch, NoteHandle):
			return self._release(handle_or_pitch)

		if channel is None:
			raise ValueError("note_off(pitch) needs a channel")

		pitch = voicefield.midi_utils.clamp_data(handle_or_pitch)
		channel = voicefield.midi_utils.clamp_channel(channel)

		for handle in self._sounding.values():
			if handle.pitch == pitch and handle.channel == channel:
				return self._release(handle)

		logger.debug(f"note_off({pitch}, ch {channel}): no sounding note")
		return False


	def _release (self, handle: NoteHandle) -> bool:

		if handle.released:
			return False

		handle.released = True

		if handle.off_task is not None:
			handle.off_task.cancel()

		self._sounding.pop(handle.id, None)
		self.output.note_off(handle.pitch, handle.channel)
		return True


	def hold (self, pitch: int, velocity: int, channel: int, duration: float) -> typing.Optional[NoteHandle]:

		"""Start a held note whose release is already scheduled *duration* beats ahead.

		The voice may still call :meth:`note_off` earlier; the note ends once.

		Raises:
			ValueError: If *duration* is negative (nothing is sent).
		"""

		if duration < 0:
			raise ValueError(f"Note duration cannot be negative ({duration})")

		handle = self.note_on(pitch, velocity, channel)

		if handle is None:
			return None

		handle.off_task = self.scheduler.call_later(
			self.scheduler.beats_to_seconds(duration),
			lambda: self._release(handle),
			name = f"note_off {handle.pitch}/{handle.channel}"
		)

		return handle


	def play (self, pitch: int, velocity: int, channel: int, duration: float) -> typing.Optional[NoteHandle]:

		"""Fire-and-forget: note-on now, note-off after *duration* beats on its own timeline."""

		return self.hold(pitch, velocity, channel, duration)


	def play_event (self, event: NoteEvent) -> typing.Optional[NoteHandle]:

		return self.play(event.pitch, event.velocity, event.channel, event.duration)


	def play_chord (self, pitches: typing.Iterable[int], velocity: int, channel: int, duration: float) -> typing.List[NoteHandle]:

		"""Play several notes together for the same duration."""

		handles = [self.play(p, velocity, channel, duration) for p in pitches]
		return [h for h in handles if h is not None]


	def flush (self) -> int:

		"""Send every owed note-off immediately; returns the number sent."""

		released = 0

		for handle in list(self._sounding.values()):
			if self._release(handle):
				released += 1

		if released:
			logger.info(f"Flushed {released} sounding notes")

		return released


	def panic (self) -> typing.List[int]:

		"""Send All Notes Off once on every panic channel and forget their notes.

		Pending note-offs on those channels are cancelled rather than sent, so
		nothing arrives after the panic.  Returns the channels addressed.
		"""

		channels = self.panic_channels()
		covered = set(channels)

		for handle in list(self._sounding.values()):
			if handle.channel in covered:
				handle.released = True
				if handle.off_task is not None:
					handle.off_task.cancel()
				self._sounding.pop(handle.id, None)

		for channel in channels:
			self.output.all_notes_off(channel)

		logger.info(f"Panic: all notes off on channels {channels}")
		return channels


	all_notes_off = panic
