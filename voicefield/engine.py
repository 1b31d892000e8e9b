"""The engine: voices, form, state bus, MIDI and audio wired together.

An :class:`Engine` is to a piece what a score and a stage are to a
performance.  Register voices with the :meth:`Engine.voice` decorator,
describe the macro form with :meth:`Engine.form`, then either
:meth:`Engine.play` in real time or :meth:`Engine.render` on a virtual
clock:

	```python
	engine = voicefield.Engine(voicefield.config.load_config())
	engine.use_bpm(72)
	engine.form(thresholds={1: "intro", 33: "groove", 97: "dissolve"})

	@engine.voice()
	def kick (v):

		if v.section == "groove":
			v.note(36, velocity=100, channel=v.channel("drums", 10), duration=0.06)

		return 1

	engine.play()
	```

Shared state lives on :attr:`Engine.bus`.  The built-in ``conductor``
voice owns ``section``, ``section_started_at`` and ``bar_count``; the
runtime toggles (``send_midi``, ``play_audio``, ``send_cc``,
``force_port``/``midi_port``, ``panic``, ``debug_heartbeat``,
``stop_all``) may be flipped by anyone, including the OSC surface.
"""

import asyncio
import dataclasses
import logging
import random
import signal
import typing

import voicefield.audio
import voicefield.config
import voicefield.constants.velocity
import voicefield.event_emitter
import voicefield.form_state
import voicefield.midi_utils
import voicefield.notes
import voicefield.osc
import voicefield.scheduler
import voicefield.state_bus
import voicefield.voice


logger = logging.getLogger(__name__)


CONDUCTOR = "conductor"
HEARTBEAT = "heartbeat"

CONDUCTOR_PRIORITY = -1

BEATS_PER_BAR = 4

TERMINAL_IDLE_SECONDS = 3600.0

HEARTBEAT_NOTE = 84
HEARTBEAT_VELOCITY = voicefield.constants.velocity.HEARTBEAT_VELOCITY
HEARTBEAT_LENGTH = 0.08


VoiceFn = typing.Callable[[voicefield.voice.VoiceContext], float]


@dataclasses.dataclass
class _PendingVoice:

	"""Holds decorator arguments until the engine starts."""

	fn: VoiceFn
	name: str
	sync: typing.Optional[str] = None
	delay: float = 0.0
	priority: int = 0


class Engine:

	"""
	The top-level container for a running piece.

	An ``Engine`` owns the scheduler, the state bus, the MIDI output with
	its note lifecycle manager, the optional audio sink and OSC surface, and
	the macro form.
	"""

	def __init__ (
		self,
		config: typing.Optional[voicefield.config.Config] = None,
		clock: typing.Optional[voicefield.scheduler.Clock] = None,
		output: typing.Optional[voicefield.midi_utils.MidiOutput] = None,
		audio: typing.Optional[voicefield.audio.AudioSink] = None,
		heartbeat: bool = True
	) -> None:

		"""
		Initialize an engine.

		Parameters:
			config: Options loaded from YAML; defaults when omitted.
			clock: Time source.  Pass a :class:`~voicefield.scheduler.VirtualClock`
				to render faster than real time.
			output: A ready MIDI output; built from the config when omitted.
			audio: A ready audio sink; built from the config when omitted.
			heartbeat: Install the built-in debug heartbeat voice.
		"""

		self.config = config or voicefield.config.Config()
		self.seed = self.config.seed
		self.rng = random.Random(self.seed)
		self.events = voicefield.event_emitter.EventEmitter()

		self.bus = voicefield.state_bus.StateBus({
			voicefield.state_bus.SEND_MIDI: self.config.send_midi,
			voicefield.state_bus.PLAY_AUDIO: self.config.play_audio,
			voicefield.state_bus.SEND_CC: self.config.send_cc,
			voicefield.state_bus.FORCE_PORT: self.config.port_forced,
			voicefield.state_bus.MIDI_PORT: self.config.midi_port,
			voicefield.state_bus.DEBUG_HEARTBEAT: self.config.debug_heartbeat,
			voicefield.state_bus.PANIC: False,
			voicefield.state_bus.STOP_ALL: False,
			voicefield.state_bus.CLIMATE: 0.0,
		})

		self.scheduler = voicefield.scheduler.Scheduler(
			clock = clock,
			bpm = self.config.bpm or 60,
			stop_flag = lambda: bool(self.bus.get(voicefield.state_bus.STOP_ALL))
		)

		self.recorder: typing.Optional[voicefield.midi_utils.MidiRecorder] = None

		if self.config.record:
			self.recorder = voicefield.midi_utils.MidiRecorder(lambda: self.scheduler.now, self.config.record)

		if output is None:
			output = voicefield.midi_utils.MidiOutput(
				device_name = self.config.midi_port,
				force_port = self.config.port_forced,
				recorder = self.recorder
			)

		output.gate(
			enabled = lambda: bool(self.bus.get(voicefield.state_bus.SEND_MIDI)),
			cc_enabled = lambda: bool(self.bus.get(voicefield.state_bus.SEND_CC))
		)

		if self.recorder is not None and output.recorder is None:
			output.recorder = self.recorder

		self.output = output

		self.channels: typing.Dict[str, int] = dict(self.config.midi_channel_map)
		self.notes = voicefield.notes.NoteManager(self.scheduler, self.output, self.channels.values())

		if audio is None:
			audio = self._build_audio()

		audio.gate(lambda: bool(self.bus.get(voicefield.state_bus.PLAY_AUDIO)))
		self.audio = audio

		self.form_state: typing.Optional[voicefield.form_state.FormState] = None
		self.contexts: typing.Dict[str, voicefield.voice.VoiceContext] = {}
		self._pending_voices: typing.List[_PendingVoice] = []
		self._heartbeat = heartbeat
		self._started = False
		self._last_conductor_time: typing.Optional[float] = None

		self._osc_server: typing.Optional[voicefield.osc.OscServer] = None

		if self.config.osc is not None:
			self.osc(
				receive_port = self.config.osc.receive_port,
				send_port = self.config.osc.send_port,
				send_host = self.config.osc.send_host
			)

		self.bus.on_change(voicefield.state_bus.PANIC, self._on_panic_toggle)
		self.bus.on_change(voicefield.state_bus.FORCE_PORT, self._on_port_change)
		self.bus.on_change(voicefield.state_bus.MIDI_PORT, self._on_port_change)


	def _build_audio (self) -> voicefield.audio.AudioSink:

		if self.config.audio is not None:
			return voicefield.audio.OscAudioSink(
				host = self.config.audio.host,
				port = self.config.audio.port,
				master_amplitude = self.config.master_amplitude,
				room_mix = self.config.room_mix
			)

		return voicefield.audio.NullAudioSink(
			master_amplitude = self.config.master_amplitude,
			room_mix = self.config.room_mix
		)


	# ── Setup ──

	@property
	def bpm (self) -> float:
		return self.scheduler.current_bpm


	def set_bpm (self, bpm: float) -> None:

		"""
		Change the tempo.  Sleeps already scheduled keep their wake time.
		"""

		self.scheduler.set_bpm(bpm)


	def use_bpm (self, bpm: float) -> None:

		"""Set the piece's own tempo unless the configuration overrides it."""

		if self.config.bpm is None:
			self.set_bpm(bpm)


	def use_channels (self, defaults: typing.Mapping[str, int]) -> None:

		"""Register a piece's default channel map; configured channels win.

		Panic covers every channel in the resulting map.
		"""

		merged = dict(defaults)
		merged.update(self.config.midi_channel_map)

		for name, channel in merged.items():
			if not 1 <= channel <= 16:
				raise ValueError(f"Channel for {name!r} must be 1-16, got {channel}")

		self.channels = merged
		self.notes.channels = sorted(set(merged.values()))


	def defaults (self, values: typing.Mapping[str, typing.Any]) -> None:

		"""Register initial values for shared keys (knobs a piece reads, e.g. ``density``)."""

		self.bus.register_defaults(values)


	def channel (self, name: str, default: int = 1) -> int:

		"""Return the channel mapped to *name*, or *default*."""

		return self.channels.get(name, default)


	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		"""
		Register a callback for engine events: cues such as ``"groove_start"``,
		``"section"`` (with the new name) and ``"bar"`` (with the bar count).
		"""

		self.events.on(event_name, callback)


	def osc (self, receive_port: int = 9000, send_port: int = 9001, send_host: str = "127.0.0.1") -> None:

		"""
		Enable the OSC control surface (toggles in, section/bar out).
		"""

		self._osc_server = voicefield.osc.OscServer(
			self,
			receive_port = receive_port,
			send_port = send_port,
			send_host = send_host
		)


	# ── Voices ──

	def voice (self, name: typing.Optional[str] = None, sync: typing.Optional[str] = None, delay: float = 0.0) -> typing.Callable[[VoiceFn], VoiceFn]:

		"""
		Register a function as a voice.

		The function is called with a :class:`~voicefield.voice.VoiceContext`
		at every wake and returns how many beats to sleep.

		Parameters:
			name: Voice name (defaults to the function name).
			sync: Name of a voice whose next wake this voice's first step
				aligns to.
			delay: Beats to wait before the first step.

		Example:
			```python
			@engine.voice(sync="thump")
			def bass (v):
				v.note(v.ring(BASSLINE), velocity=90, channel=1, duration=0.5)
				return 0.5
			```
		"""

		def decorator (fn: VoiceFn) -> VoiceFn:
			self.add_voice(fn, name=name, sync=sync, delay=delay)
			return fn

		return decorator


	def add_voice (self, fn: VoiceFn, name: typing.Optional[str] = None, sync: typing.Optional[str] = None, delay: float = 0.0) -> None:

		"""Register *fn* as a voice (see :meth:`voice`).  Voices added after start run immediately."""

		voice_name = name or fn.__name__
		known = {p.name for p in self._pending_voices} | set(self.scheduler.voices)

		if voice_name in known or voice_name in (CONDUCTOR, HEARTBEAT):
			raise ValueError(f"Voice {voice_name!r} is already registered")

		if delay < 0:
			raise ValueError("Voice delay cannot be negative")

		pending = _PendingVoice(fn=fn, name=voice_name, sync=sync, delay=delay)

		if self._started:
			self._schedule_voice(pending)
		else:
			self._pending_voices.append(pending)


	def _voice_rng (self, name: str) -> random.Random:

		if self.seed is None:
			return random.Random()

		return random.Random(f"{self.seed}:{name}")


	def _schedule_voice (self, pending: _PendingVoice) -> voicefield.scheduler.VoiceRunner:

		context = voicefield.voice.VoiceContext(pending.name, self, self._voice_rng(pending.name))
		self.contexts[pending.name] = context

		spec = voicefield.scheduler.VoiceSpec(name=pending.name, fn=pending.fn, sync=pending.sync, priority=pending.priority)
		return self.scheduler.add_voice(spec, context, delay=pending.delay)


	# ── Form ──

	def form (
		self,
		sections: typing.Optional[voicefield.form_state.SectionList] = None,
		unit: str = "bars",
		loop: bool = False,
		loop_to: typing.Optional[str] = None,
		thresholds: typing.Optional[typing.Mapping[int, str]] = None
	) -> voicefield.form_state.FormState:

		"""
		Define the macro form.  A ``conductor`` voice drives it once the engine starts.

		Parameters:
			sections: ``(name, length)`` pairs; ``None`` marks a terminal section.
			unit: ``"bars"`` (one bar = 4 beats), ``"beats"`` or ``"seconds"``.
			loop: Cycle back to *loop_to* after the last section.
			loop_to: Loop target (default: the first section).
			thresholds: Alternatively, first-bar thresholds such as
				``{1: "intro", 33: "groove"}``; the last section is terminal.

		Example:
			```python
			engine.form([("winddown", 240), ("descent", 720), ("sleep", None)], unit="seconds")
			```
		"""

		if self._started:
			raise ValueError("The form must be defined before the engine starts")

		if thresholds is not None:
			form = voicefield.form_state.FormState.from_thresholds(thresholds, loop=loop)
		elif sections is not None:
			form = voicefield.form_state.FormState(sections, unit=unit, loop=loop, loop_to=loop_to)
		else:
			raise ValueError("form() needs sections or thresholds")

		form.on_exit(self._on_section_exit)
		form.on_enter(self._on_section_enter)

		self.form_state = form
		return form


	def form_jump (self, section_name: str) -> None:

		"""Force the form to a named section immediately."""

		if self.form_state is None:
			raise ValueError("form_jump() needs a form")

		self.form_state.jump_to(section_name)

		if self.form_state.unit != "bars":
			self._realign_conductor()


	def _realign_conductor (self) -> None:

		"""Restart the conductor's timer from now so a jumped-to section runs its full length."""

		runner = self.scheduler.voices.get(CONDUCTOR)

		if runner is None or runner.status != voicefield.scheduler.RUNNING or runner.context.steps == 0:
			return

		now = self.scheduler.now
		self._last_conductor_time = now
		self.scheduler.schedule(runner, now + self.scheduler.beats_to_seconds(self._conductor_sleep()))


	@property
	def section (self) -> typing.Optional[str]:
		return self.bus.get(voicefield.state_bus.SECTION)


	def _on_section_exit (self, name: str) -> None:
		self.events.emit_sync(f"{name}_end")


	def _on_section_enter (self, name: str) -> None:

		now = self.scheduler.now

		self.bus.set(voicefield.state_bus.SECTION, name, owner=CONDUCTOR)
		self.bus.set(voicefield.state_bus.SECTION_STARTED_AT, now, owner=CONDUCTOR)

		logger.info(f"Form: {name}")

		self.events.emit_sync(f"{name}_start")
		self.events.emit_sync("section", name)

		if self._osc_server is not None:
			self._osc_server.send("/section", name)


	def _conductor (self, v: voicefield.voice.VoiceContext) -> float:

		"""Own the form: advance it and publish the section, then sleep to the next boundary."""

		form = self.form_state
		assert form is not None

		if v.steps == 0:
			self._last_conductor_time = v.now
			self._on_section_enter(form.current)

			if form.unit == "bars":
				self._publish_bar(1)

		elif form.unit == "bars":
			form.advance(1)
			self._publish_bar(int(self.bus.get(voicefield.state_bus.BAR_COUNT, 0)) + 1)

		else:
			elapsed = v.now - (self._last_conductor_time or 0.0)
			self._last_conductor_time = v.now

			if form.unit == "beats":
				elapsed = self.scheduler.seconds_to_beats(elapsed)

			form.advance_time(elapsed)

		return self._conductor_sleep()


	def _conductor_sleep (self) -> float:

		"""Beats until the conductor's next boundary."""

		form = self.form_state
		assert form is not None

		if form.unit == "bars":
			return BEATS_PER_BAR

		remaining = form.remaining()

		if remaining is None:
			return self.scheduler.seconds_to_beats(TERMINAL_IDLE_SECONDS)

		if form.unit == "seconds":
			return self.scheduler.seconds_to_beats(remaining)

		return remaining


	def _publish_bar (self, bar: int) -> None:

		self.bus.set(voicefield.state_bus.BAR_COUNT, bar, owner=CONDUCTOR)
		self.events.emit_sync("bar", bar)

		if self._osc_server is not None:
			self._osc_server.send("/bar", bar)


	# ── Built-in voices ──

	def _heartbeat_voice (self, v: voicefield.voice.VoiceContext) -> float:

		"""A short blip every beat while ``debug_heartbeat`` is on."""

		if v.get(voicefield.state_bus.DEBUG_HEARTBEAT):
			channel = self.channel("heartbeat", self.channel("phrase", 1))
			self.notes.play(HEARTBEAT_NOTE, HEARTBEAT_VELOCITY, channel, HEARTBEAT_LENGTH)
			self.audio.play("elec_tick", amp=0.08)
			logger.debug(f"heartbeat: beat {v.beat:.0f}, section {v.section}")

		return 1


	# ── Toggles ──

	def _on_panic_toggle (self, value: typing.Any, previous: typing.Any) -> None:

		if value:
			self.panic()
			self.bus.set(voicefield.state_bus.PANIC, False)


	def _on_port_change (self, value: typing.Any, previous: typing.Any) -> None:

		self.notes.flush()
		self.output.reopen(
			self.bus.get(voicefield.state_bus.MIDI_PORT),
			bool(self.bus.get(voicefield.state_bus.FORCE_PORT))
		)


	def panic (self) -> typing.List[int]:

		"""All notes off on every configured channel; pending note-offs are dropped."""

		return self.notes.panic()


	def stop (self) -> None:

		"""Stop every voice at its next step.  Note-offs and ramps already in flight still finish."""

		self.scheduler.stop()


	# ── Running ──

	def _start (self) -> None:

		if self._started:
			return

		self._started = True

		if self.form_state is not None:
			self.bus.claim(voicefield.state_bus.SECTION, CONDUCTOR)
			self.bus.claim(voicefield.state_bus.SECTION_STARTED_AT, CONDUCTOR)
			self.bus.claim(voicefield.state_bus.BAR_COUNT, CONDUCTOR)
			# Wakes ahead of any voice due at the same instant.
			self._schedule_voice(_PendingVoice(fn=self._conductor, name=CONDUCTOR, priority=CONDUCTOR_PRIORITY))

		if self._heartbeat:
			self._schedule_voice(_PendingVoice(fn=self._heartbeat_voice, name=HEARTBEAT))

		for pending in self._pending_voices:
			self._schedule_voice(pending)

		for pending in self._pending_voices:
			if pending.sync is not None and pending.sync not in self.scheduler.voices:
				logger.warning(f"Voice {pending.name!r} syncs to unknown voice {pending.sync!r}; it will never start")

		self._pending_voices = []

		logger.info(f"Engine started: {len(self.scheduler.voices)} voices at {self.bpm:.2f} BPM")


	def render (self, seconds: float) -> None:

		"""
		Run on a virtual clock for *seconds* of simulated time.

		Deterministic when a seed is configured.  Call repeatedly to continue;
		call :meth:`finish` to drain and close.

		Raises:
			ValueError: If the engine is not running on a virtual clock.
		"""

		if not isinstance(self.scheduler.clock, voicefield.scheduler.VirtualClock):
			raise ValueError("render() needs an engine built with a VirtualClock")

		self._start()
		self.scheduler.render(seconds)


	def finish (self) -> None:

		"""Stop a rendered engine: drain timed tasks, then shut down."""

		self.scheduler.drain()
		self._shutdown()


	def _shutdown (self) -> None:

		"""Flush owed note-offs, panic, save any recording and close the port."""

		self.notes.flush()
		self.panic()

		if self.recorder is not None:
			self.recorder.save(self.bpm)

		self.output.close()
		self.audio.close()

		logger.info("Engine stopped")


	def play (self) -> None:

		"""
		Start the piece in real time.

		Blocks until SIGINT/SIGTERM, ``engine.stop()`` or the ``stop_all``
		toggle; then lets pending note-offs drain and shuts down cleanly.
		"""

		try:
			asyncio.run(self._run())

		except KeyboardInterrupt:
			pass


	async def _run (self) -> None:

		"""
		Async entry point: start voices, install signal handlers, run the scheduler.
		"""

		if isinstance(self.scheduler.clock, voicefield.scheduler.WallClock):
			self.scheduler.clock.reset()

		self._start()

		loop = asyncio.get_running_loop()

		for sig in (signal.SIGINT, signal.SIGTERM):
			loop.add_signal_handler(sig, self.stop)

		if self._osc_server is not None:
			await self._osc_server.start()

		logger.info("Playing. Press Ctrl+C to stop.")

		try:
			await self.scheduler.run()

		finally:
			if self._osc_server is not None:
				await self._osc_server.stop()

			self._shutdown()
