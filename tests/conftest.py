import typing

import mido
import pytest

import voicefield.audio
import voicefield.config
import voicefield.engine
import voicefield.midi_utils
import voicefield.scheduler


class FakeMidiOut:

	"""MIDI output stub that keeps every message it is sent."""

	def __init__ (self, name: str = "Dummy MIDI") -> None:

		self.name = name
		self.messages: typing.List[mido.Message] = []
		self.closed = False


	def send (self, message: mido.Message) -> None:

		"""Record an outgoing MIDI message."""

		self.messages.append(message)


	def close (self) -> None:

		self.closed = True


	def of_type (self, kind: str) -> typing.List[mido.Message]:

		"""Return the recorded messages of one type (e.g. ``"note_on"``)."""

		return [m for m in self.messages if m.type == kind]


class RecordingAudioSink (voicefield.audio.AudioSink):

	"""Audio sink that keeps every play event it is sent."""

	def __init__ (self, **kwargs: typing.Any) -> None:

		super().__init__(**kwargs)
		self.events: typing.List[typing.Tuple[str, typing.Dict[str, typing.Any]]] = []


	def _send (self, instrument: str, params: typing.Dict[str, typing.Any]) -> bool:

		self.events.append((instrument, params))
		return True


# Module-level list so tests can reach every port opened through mido.
opened_ports: typing.List[FakeMidiOut] = []


def _fake_get_output_names () -> typing.List[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI", "Other MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	port = FakeMidiOut(name)
	opened_ports.append(port)
	return port


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> typing.List[FakeMidiOut]:

	"""Patch mido so every output opened in the test is a recording fake."""

	opened_ports.clear()
	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)
	return opened_ports


@pytest.fixture
def port () -> FakeMidiOut:

	return FakeMidiOut()


@pytest.fixture
def output (port: FakeMidiOut) -> voicefield.midi_utils.MidiOutput:

	"""A MIDI output bound directly to a fake port (no device resolution)."""

	return voicefield.midi_utils.MidiOutput(port=port)


@pytest.fixture
def clock () -> voicefield.scheduler.VirtualClock:

	return voicefield.scheduler.VirtualClock()


@pytest.fixture
def scheduler (clock: voicefield.scheduler.VirtualClock) -> voicefield.scheduler.Scheduler:

	"""A 60 BPM scheduler on a virtual clock, so one beat is one second."""

	return voicefield.scheduler.Scheduler(clock=clock, bpm=60)


@pytest.fixture
def make_engine (port: FakeMidiOut) -> typing.Callable[..., voicefield.engine.Engine]:

	"""Build a seeded virtual-clock engine writing to the fake port."""

	def _make (heartbeat: bool = False, **options: typing.Any) -> voicefield.engine.Engine:

		options.setdefault("seed", 7)
		config = voicefield.config.Config(**options)

		engine = voicefield.engine.Engine(
			config,
			clock = voicefield.scheduler.VirtualClock(),
			output = voicefield.midi_utils.MidiOutput(port=port),
			audio = RecordingAudioSink(master_amplitude=config.master_amplitude),
			heartbeat = heartbeat
		)

		return engine

	return _make


@pytest.fixture
def engine (make_engine: typing.Callable[..., voicefield.engine.Engine]) -> voicefield.engine.Engine:

	return make_engine()
