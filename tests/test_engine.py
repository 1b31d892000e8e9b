import pytest

import voicefield.audio
import voicefield.config
import voicefield.engine
import voicefield.midi_utils
import voicefield.scheduler
import voicefield.state_bus


# --- Form and conductor ---


def test_conductor_publishes_sections_and_bars (engine) -> None:

	"""Bar forms advance one bar every 4 beats; cues fire at the boundary."""

	log = []

	engine.form(thresholds={1: "intro", 3: "groove"})
	engine.on_event("section", lambda name: log.append(("section", name, engine.scheduler.now)))
	engine.on_event("bar", lambda bar: log.append(("bar", bar, engine.scheduler.now)))
	engine.on_event("intro_end", lambda: log.append(("cue", "intro_end", engine.scheduler.now)))

	engine.render(8)

	assert log == [
		("section", "intro", 0.0),
		("bar", 1, 0.0),
		("bar", 2, 4.0),
		("cue", "intro_end", 8.0),
		("section", "groove", 8.0),
		("bar", 3, 8.0),
	]

	assert engine.bus.get(voicefield.state_bus.SECTION_STARTED_AT) == 8.0
	assert engine.bus.get(voicefield.state_bus.BAR_COUNT) == 3


def test_voice_sees_new_section_at_boundary (engine) -> None:

	"""A voice waking on a section boundary already sees the new section."""

	seen = []

	engine.form(thresholds={1: "intro", 3: "groove"})
	engine.add_voice(lambda v: seen.append(v.section) or 8, name="slow")

	engine.render(8)

	assert seen == ["intro", "groove"]


def test_only_the_conductor_writes_section (engine) -> None:

	engine.form([("intro", 4), ("outro", None)])
	engine.render(0)

	with pytest.raises(voicefield.state_bus.OwnershipError):
		engine.bus.set(voicefield.state_bus.SECTION, "outro")


def test_time_form_in_seconds (make_engine) -> None:

	engine = make_engine(bpm=120)
	sections = []

	engine.form([("winddown", 10), ("descent", 20), ("sleep", None)], unit="seconds")
	engine.on_event("section", lambda name: sections.append((name, engine.scheduler.now)))

	engine.render(4000)

	assert sections == [("winddown", 0.0), ("descent", 10.0), ("sleep", 30.0)]


def test_form_after_start_is_rejected (engine) -> None:

	engine.form([("a", 4)])
	engine.render(0)

	with pytest.raises(ValueError):
		engine.form([("b", 4)])


def test_form_needs_sections (engine) -> None:

	with pytest.raises(ValueError):
		engine.form()


def test_form_jump (engine) -> None:

	engine.form([("intro", 8), ("groove", 8), ("dissolve", None)])
	engine.render(0)

	engine.form_jump("dissolve")

	assert engine.section == "dissolve"

	with pytest.raises(ValueError):
		engine.form_jump("nowhere")


def test_time_form_jump_runs_the_full_section (engine) -> None:

	"""A section jumped to mid-way through another lasts its own length from the jump."""

	engine.form([("winddown", 240), ("descent", 720), ("sleep", None)], unit="seconds")
	starts: list = []
	engine.on_event("sleep_start", lambda: starts.append(engine.scheduler.now))

	engine.render(100)
	engine.form_jump("descent")

	assert engine.bus.get(voicefield.state_bus.SECTION_STARTED_AT) == 100

	engine.render(2000)

	assert starts == pytest.approx([820.0])


def test_time_form_jump_out_of_terminal_section (engine) -> None:

	"""Jumping back from a terminal section does not wait out the terminal idle."""

	engine.form([("a", 10), ("b", None)], unit="seconds")
	sections: list = []
	engine.on_event("section", lambda name: sections.append((name, engine.scheduler.now)))

	engine.render(50)
	engine.form_jump("a")
	engine.render(30)

	assert sections == [("a", 0.0), ("b", pytest.approx(10.0)), ("a", 50.0), ("b", pytest.approx(60.0))]


# --- Voices ---


def test_voice_decorator_registers_and_runs (engine, port) -> None:

	@engine.voice()
	def kick (v):
		v.note(36, velocity=100, channel=10, duration=0.1)
		return 1

	engine.render(3)

	assert [m.note for m in port.of_type("note_on")] == [36] * 4
	assert engine.contexts["kick"].steps == 4


def test_duplicate_and_reserved_voice_names (engine) -> None:

	engine.add_voice(lambda v: 1, name="a")

	with pytest.raises(ValueError):
		engine.add_voice(lambda v: 1, name="a")

	with pytest.raises(ValueError):
		engine.add_voice(lambda v: 1, name=voicefield.engine.CONDUCTOR)

	with pytest.raises(ValueError):
		engine.add_voice(lambda v: 1, name="b", delay=-1)


def test_voice_added_after_start_runs_immediately (engine) -> None:

	engine.render(2)

	starts = []
	engine.add_voice(lambda v: starts.append(v.now) or 1, name="late")
	engine.render(1)

	assert starts == [2.0, 3.0]


def test_failed_voice_does_not_stop_the_engine (engine) -> None:

	failures = []

	def broken (v):
		raise RuntimeError("broken voice")

	engine.scheduler.events.on("voice_failed", lambda name, exc: failures.append(name))
	engine.add_voice(broken)
	engine.add_voice(lambda v: 1, name="steady")

	engine.render(5)

	assert failures == ["broken"]
	assert engine.contexts["steady"].steps == 6


def test_voice_rng_is_seeded_per_voice (make_engine) -> None:

	"""Voices draw from their own seeded streams, so adding a voice never changes another's choices."""

	def draws (extra_voice: bool):

		engine = make_engine(seed=11)
		values = []

		engine.add_voice(lambda v: values.append(v.rrand(0, 1)) or 1, name="sampler")

		if extra_voice:
			engine.add_voice(lambda v: 0.25 + v.rrand(0, 1), name="noise")

		engine.render(5)
		return values

	assert draws(False) == draws(True)


# --- Channels and knobs ---


def test_use_channels_prefers_configured_map (make_engine) -> None:

	engine = make_engine(midi_channel_map={"bass": 5})
	engine.use_channels({"bass": 1, "drums": 10})

	assert engine.channel("bass") == 5
	assert engine.channel("drums") == 10
	assert engine.channel("missing", 3) == 3
	assert engine.notes.panic_channels() == [5, 10]


def test_use_channels_validates (engine) -> None:

	with pytest.raises(ValueError):
		engine.use_channels({"bass": 17})


def test_use_bpm_yields_to_config (make_engine) -> None:

	engine = make_engine(bpm=90)
	engine.use_bpm(72)

	assert engine.bpm == 90

	free = make_engine()
	free.use_bpm(72)

	assert free.bpm == 72


def test_defaults_are_read_not_written (engine) -> None:

	engine.defaults({"density": 0.55})

	assert engine.bus.get("density") == 0.55
	assert engine.bus.has("density") is False


# --- Toggles ---


def test_panic_toggle (engine, port) -> None:

	engine.use_channels({"bass": 1, "drums": 10})
	engine.notes.play(40, 90, 1, duration=8)

	engine.bus.set(voicefield.state_bus.PANIC, True)

	all_off = [m for m in port.of_type("control_change") if m.control == 123]

	assert sorted(m.channel + 1 for m in all_off) == [1, 10]
	assert engine.bus.get(voicefield.state_bus.PANIC) is False

	engine.render(10)

	assert port.of_type("note_off") == []


def _beeper (duration: float):

	def beeper (v):
		v.note(60, channel=1, duration=duration)
		return 1

	return beeper


def test_send_midi_toggle_silences_voices (engine, port) -> None:

	engine.add_voice(_beeper(0.5))
	engine.render(1.5)

	engine.bus.set(voicefield.state_bus.SEND_MIDI, False)
	engine.render(3)

	assert len(port.of_type("note_on")) == 2
	assert len(port.of_type("note_off")) == 2


def test_play_audio_toggle (make_engine) -> None:

	engine = make_engine(play_audio=True)

	assert engine.audio.play("sine", note=60) is True

	engine.bus.set(voicefield.state_bus.PLAY_AUDIO, False)

	assert engine.audio.play("sine", note=60) is False
	assert len(engine.audio.events) == 1


def test_port_change_flushes_then_reopens (engine, port, patch_midi) -> None:

	"""Changing the port ends sounding notes on the old port before switching."""

	engine.notes.play(50, 90, 1, duration=8)

	engine.bus.set(voicefield.state_bus.MIDI_PORT, "Other MIDI")

	assert [m.note for m in port.of_type("note_off")] == [50]
	assert port.closed is True
	assert engine.output.port is patch_midi[-1]
	assert engine.output.port.name == "Other MIDI"


def test_stop_all_toggle_retires_voices (engine, port) -> None:

	engine.add_voice(_beeper(2))
	engine.render(1)

	engine.bus.set(voicefield.state_bus.STOP_ALL, True)
	engine.render(5)

	assert engine.scheduler.voices["beeper"].status == voicefield.scheduler.RETIRED
	assert len(port.of_type("note_on")) == 2
	assert len(port.of_type("note_off")) == 2


def test_heartbeat_follows_its_toggle (make_engine, port) -> None:

	engine = make_engine(heartbeat=True)
	engine.render(2)

	assert port.of_type("note_on") == []

	engine.bus.set(voicefield.state_bus.DEBUG_HEARTBEAT, True)
	engine.render(2)

	notes = port.of_type("note_on")
	assert len(notes) == 2
	assert all(m.note == voicefield.engine.HEARTBEAT_NOTE for m in notes)


# --- Running ---


def test_render_needs_virtual_clock (port) -> None:

	engine = voicefield.engine.Engine(
		voicefield.config.Config(),
		clock = voicefield.scheduler.WallClock(),
		output = voicefield.midi_utils.MidiOutput(port=port),
		audio = voicefield.audio.NullAudioSink()
	)

	with pytest.raises(ValueError):
		engine.render(1)


def test_finish_drains_and_closes (engine, port) -> None:

	"""finish() lets owed note-offs go out, panics, and closes the port."""

	engine.use_channels({"pad": 3})

	def pad (v):
		v.hold(48, channel=3, duration=30)
		return 60

	engine.add_voice(pad)

	engine.render(1)
	engine.finish()

	assert [m.note for m in port.of_type("note_off")] == [48]
	assert [m.channel + 1 for m in port.of_type("control_change") if m.control == 123] == [3]
	assert port.closed is True


def test_recording_is_saved_on_finish (make_engine, tmp_path) -> None:

	target = tmp_path / "session.mid"
	engine = make_engine(record=str(target))

	engine.add_voice(_beeper(0.5))
	engine.render(2)
	engine.finish()

	assert target.exists()
	assert len(engine.recorder.events) >= 6
