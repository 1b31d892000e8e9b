"""Configuration surface, loaded once before the engine starts.

A YAML file maps onto :class:`Config`.  Every key is optional; a missing
file means "all defaults".  Example ``config.yaml``::

	bpm: 60
	master_amplitude: 0.8
	climate_depth: 0.22
	pulse_period_range:
	  winddown: [8, 15]
	  sleep: [12, 24]
	chime_fade_duration: 1500
	midi_channel_map:
	  drums: 10
	  bass: 1
	port_forced: false
	midi_port: "loopMIDI Port"
	osc:
	  receive_port: 9000
	  send_port: 9001

Unknown keys are reported and ignored; values that are present but invalid
raise :class:`ValueError` so a typo never silently changes a long session.
"""

import dataclasses
import logging
import os
import typing

import yaml

import voicefield.constants.midi


logger = logging.getLogger(__name__)


def _default_pulse_ranges () -> typing.Dict[str, typing.Tuple[float, float]]:
	return {"winddown": (8.0, 15.0), "sleep": (12.0, 24.0)}


@dataclasses.dataclass
class OscConfig:

	receive_port: int = 9000
	send_port: int = 9001
	send_host: str = "127.0.0.1"


@dataclasses.dataclass
class AudioConfig:

	host: str = "127.0.0.1"
	port: int = 57120


@dataclasses.dataclass
class Config:

	"""
	Every option the engine and the voice set read.

	Attributes:
		bpm: Tempo; voice sleeps are in beats.  None keeps the piece's own tempo.
		master_amplitude: Multiplier applied to every audio play event's ``amp``.
		room_mix: Reverb send added to every audio play event as ``room``.
		climate_enabled: Run the shared climate stream (root_sleep).
		climate_depth: Climate wander bound, 0 to ~0.35.
		climate_update: Seconds between climate updates.
		pulse_period_range: Section name → ``(low, high)`` seconds for the
			sub pulse; sections not listed use the ``winddown`` range.
		guide_duration: Seconds of winddown before the descent.
		descent_duration: Seconds of descent before sleep.
		chime_fade_duration: Seconds after sleep begins over which chimes fade out.
		chime_odds: Per-cycle chime chance while fully faded in.
		chime_enabled: Run the micro-chime layer.
		binaural_enabled: Run the binaural pair.
		whisper_enabled: Run the whisper motifs.
		guide_sample: Path of an optional narration sample for the winddown.
		cc_jitter: Maximum random offset added to modulation CC steps.
		midi_channel_map: Voice/layer name → MIDI channel (1-16).  Panic
			addresses every channel listed here.
		port_forced: Only ever open ``midi_port``.
		midi_port: Preferred MIDI output port name.
		send_midi: Initial state of the MIDI emission toggle.
		play_audio: Initial state of the audio emission toggle.
		send_cc: Initial state of the controller emission toggle.
		debug_heartbeat: Initial state of the heartbeat toggle.
		seed: Seed for every random decision; None for a different run each time.
		osc: OSC control server settings, or None to disable it.
		audio: External audio engine address, or None for no audio transport.
		record: Filename to record the MIDI session to, or None.
	"""

	bpm: typing.Optional[float] = None
	master_amplitude: float = 0.9
	room_mix: float = 0.35

	climate_enabled: bool = True
	climate_depth: float = 0.22
	climate_update: float = 28.0

	pulse_period_range: typing.Dict[str, typing.Tuple[float, float]] = dataclasses.field(default_factory=_default_pulse_ranges)

	guide_duration: float = 240.0
	descent_duration: float = 720.0
	chime_fade_duration: float = 1500.0
	chime_odds: float = 0.14
	chime_enabled: bool = True
	binaural_enabled: bool = True
	whisper_enabled: bool = True
	guide_sample: typing.Optional[str] = None

	cc_jitter: float = 2.0

	midi_channel_map: typing.Dict[str, int] = dataclasses.field(default_factory=dict)
	port_forced: bool = False
	midi_port: typing.Optional[str] = None

	send_midi: bool = True
	play_audio: bool = False
	send_cc: bool = True
	debug_heartbeat: bool = False

	seed: typing.Optional[int] = None

	osc: typing.Optional[OscConfig] = None
	audio: typing.Optional[AudioConfig] = None
	record: typing.Optional[str] = None


	def validate (self) -> "Config":

		"""Check ranges; returns self so it can be chained.

		Raises:
			ValueError: On the first invalid option.
		"""

		if self.bpm is not None and self.bpm <= 0:
			raise ValueError("bpm must be positive")

		if self.master_amplitude < 0:
			raise ValueError("master_amplitude cannot be negative")

		if not 0.0 <= self.room_mix <= 1.0:
			raise ValueError("room_mix must be between 0 and 1")

		if self.climate_depth < 0:
			raise ValueError("climate_depth cannot be negative")

		for name in ("climate_update", "guide_duration", "descent_duration", "chime_fade_duration"):
			if getattr(self, name) <= 0:
				raise ValueError(f"{name} must be positive")

		if not 0.0 < self.chime_odds <= 1.0:
			raise ValueError("chime_odds must be in (0, 1]")

		if self.cc_jitter < 0:
			raise ValueError("cc_jitter cannot be negative")

		for section, bounds in self.pulse_period_range.items():
			low, high = bounds
			if low <= 0 or high < low:
				raise ValueError(f"pulse_period_range[{section!r}] must satisfy 0 < low <= high")

		for name, channel in self.midi_channel_map.items():
			if not voicefield.constants.midi.CHANNEL_MIN <= channel <= voicefield.constants.midi.CHANNEL_MAX:
				raise ValueError(f"midi_channel_map[{name!r}] = {channel} is outside 1-16")

		if self.port_forced and not self.midi_port:
			raise ValueError("port_forced needs midi_port")

		return self


	@classmethod
	def from_dict (cls, data: typing.Optional[typing.Mapping[str, typing.Any]]) -> "Config":

		"""Build a validated config from parsed YAML (or any mapping)."""

		data = dict(data or {})
		known = {f.name for f in dataclasses.fields(cls)}

		for key in sorted(set(data) - known):
			logger.warning(f"Unknown config key {key!r} ignored")
			del data[key]

		if "pulse_period_range" in data:
			data["pulse_period_range"] = {
				str(section): (float(bounds[0]), float(bounds[1]))
				for section, bounds in (data["pulse_period_range"] or {}).items()
			}

		if "midi_channel_map" in data:
			data["midi_channel_map"] = {str(k): int(v) for k, v in (data["midi_channel_map"] or {}).items()}

		for key, section_cls in (("osc", OscConfig), ("audio", AudioConfig)):
			if data.get(key) is not None:
				try:
					data[key] = section_cls(**data[key])
				except TypeError as exc:
					raise ValueError(f"Invalid {key!r} section: {exc}") from exc

		return cls(**data).validate()


def load_config (config_path: str = "config.yaml") -> Config:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return Config()

	with open(config_path, "r") as f:
		data = yaml.safe_load(f)

	if data is not None and not isinstance(data, dict):
		raise ValueError(f"Config file {config_path} must contain a mapping")

	logger.info(f"Loaded config from {config_path}")
	return Config.from_dict(data)
