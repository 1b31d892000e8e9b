import types

import pytest

import voicefield.midi_utils
import voicefield.notes
import voicefield.scheduler


@pytest.fixture
def notes (scheduler: voicefield.scheduler.Scheduler, output: voicefield.midi_utils.MidiOutput) -> voicefield.notes.NoteManager:

	return voicefield.notes.NoteManager(scheduler, output, channels=[1, 2, 10])


def _offs (port, pitch: int):
	return [m for m in port.of_type("note_off") if m.note == pitch]


def test_note_off_follows_after_duration (scheduler, port, notes) -> None:

	"""A fire-and-forget note ends exactly once, duration beats after it started."""

	notes.play(60, 90, 1, duration=0.5)

	assert len(port.of_type("note_on")) == 1
	assert _offs(port, 60) == []

	scheduler.render(0.49)
	assert _offs(port, 60) == []

	scheduler.render(0.02)

	assert len(_offs(port, 60)) == 1
	assert notes.sounding == []

	scheduler.render(10)
	assert len(_offs(port, 60)) == 1


def test_note_off_survives_voice_retirement (scheduler, port, notes) -> None:

	"""The note-off is owed even if the voice that started the note stops."""

	def one_shot (v) -> float:
		notes.play(48, 100, 2, duration=4)
		raise RuntimeError("voice dies right after starting a note")

	context = types.SimpleNamespace(now=0.0, steps=0)
	scheduler.add_voice(voicefield.scheduler.VoiceSpec("one_shot", one_shot), context)

	scheduler.render(1)
	assert scheduler.voices["one_shot"].status == voicefield.scheduler.FAILED
	assert _offs(port, 48) == []

	scheduler.render(5)
	assert len(_offs(port, 48)) == 1


def test_messages_are_clamped (port, notes) -> None:

	notes.note_on(200, 300, 20)

	message = port.of_type("note_on")[0]
	assert message.note == 127
	assert message.velocity == 127
	assert message.channel == 15


def test_explicit_note_off_cancels_scheduled_off (scheduler, port, notes) -> None:

	handle = notes.hold(40, 90, 1, duration=2)

	assert notes.note_off(handle) is True
	assert notes.note_off(handle) is False

	scheduler.render(5)

	assert len(_offs(port, 40)) == 1
	assert scheduler.pending_tasks() == 0


def test_negative_duration_sends_nothing (scheduler, port, notes) -> None:

	"""A rejected duration leaves no note-on behind and nothing sounding."""

	with pytest.raises(ValueError):
		notes.play(60, 100, 1, -1)

	with pytest.raises(ValueError):
		notes.hold(62, 100, 1, duration=-0.5)

	scheduler.render(10)

	assert port.of_type("note_on") == []
	assert notes.sounding == []
	assert scheduler.pending_tasks() == 0


def test_zero_duration_note_still_ends (scheduler, port, notes) -> None:

	notes.play(64, 90, 1, duration=0)
	scheduler.render(0)

	assert len(port.of_type("note_on")) == 1
	assert len(_offs(port, 64)) == 1
	assert notes.sounding == []


def test_note_off_by_pitch_needs_channel (notes) -> None:

	notes.note_on(50, 80, 1)

	with pytest.raises(ValueError):
		notes.note_off(50)

	assert notes.note_off(50, 2) is False
	assert notes.note_off(50, 1) is True


def test_retriggered_note_off_precedes_new_note_on (scheduler, port, notes) -> None:

	"""A note released and restarted at the same instant sends off before on."""

	def drone (v) -> float:
		notes.hold(36, 70, 1, duration=2)
		return 2

	context = types.SimpleNamespace(now=0.0, steps=0)
	scheduler.add_voice(voicefield.scheduler.VoiceSpec("drone", drone), context)

	scheduler.render(2.5)

	kinds = [m.type for m in port.messages if m.type in ("note_on", "note_off")]
	assert kinds == ["note_on", "note_off", "note_on"]


def test_disabled_output_sends_nothing_but_owes_offs (scheduler, port, output, notes) -> None:

	"""Turning MIDI off stops new notes; notes already sounding still end."""

	enabled = {"on": True}
	output.gate(lambda: enabled["on"])

	notes.play(60, 90, 1, duration=1)
	enabled["on"] = False

	assert notes.play(62, 90, 1, duration=1) is None

	scheduler.render(2)

	assert [m.note for m in port.of_type("note_on")] == [60]
	assert [m.note for m in port.of_type("note_off")] == [60]


def test_panic_sends_cc123_once_per_channel (scheduler, port, notes) -> None:

	notes.play(60, 90, 1, duration=8)
	notes.play(38, 90, 10, duration=8)

	channels = notes.panic()

	assert channels == [1, 2, 10]

	all_off = [m for m in port.of_type("control_change") if m.control == 123]
	assert sorted(m.channel + 1 for m in all_off) == [1, 2, 10]
	assert all(m.value == 0 for m in all_off)


def test_panic_cancels_pending_note_offs (scheduler, port, notes) -> None:

	"""Nothing is sent for a panicked note after the panic."""

	notes.play(60, 90, 1, duration=8)
	notes.panic()

	scheduler.render(10)

	assert port.of_type("note_off") == []
	assert notes.sounding == []


def test_panic_without_channel_map_covers_used_channels (scheduler, port, output) -> None:

	notes = voicefield.notes.NoteManager(scheduler, output)

	notes.play(60, 90, 3, duration=1)
	notes.play(61, 90, 7, duration=1)

	assert notes.panic() == [3, 7]


def test_flush_releases_everything (scheduler, port, notes) -> None:

	notes.play(60, 90, 1, duration=8)
	notes.play_chord([64, 67], 80, 2, duration=8)

	assert notes.flush() == 3
	assert sorted(m.note for m in port.of_type("note_off")) == [60, 64, 67]

	scheduler.render(10)
	assert len(port.of_type("note_off")) == 3


def test_play_event (scheduler, port, notes) -> None:

	event = voicefield.notes.NoteEvent(pitch=45, velocity=70, channel=2, duration=1)
	handle = notes.play_event(event)

	assert handle is not None
	assert handle.channel == 2
	assert handle.started_at == 0.0
