import pytest

import voicefield.audio

import conftest


def test_master_amplitude_scales_amp () -> None:

	sink = conftest.RecordingAudioSink(master_amplitude=0.5)

	assert sink.play("sine", note=43, amp=0.2) is True

	instrument, params = sink.events[0]
	assert instrument == "sine"
	assert params["amp"] == pytest.approx(0.1)
	assert params["note"] == 43
	assert sink.sent == 1


def test_room_mix_is_a_default_only () -> None:

	sink = conftest.RecordingAudioSink(room_mix=0.35)

	sink.play("pad")
	sink.play("pad", room=0.9)

	assert sink.events[0][1]["room"] == 0.35
	assert sink.events[1][1]["room"] == 0.9


def test_missing_amp_defaults_to_master () -> None:

	sink = conftest.RecordingAudioSink(master_amplitude=0.8)
	sink.play("noise")

	assert sink.events[0][1]["amp"] == pytest.approx(0.8)


def test_gate_blocks_play_events () -> None:

	"""With the audio toggle off nothing is sent and play() reports it."""

	state = {"on": False}
	sink = conftest.RecordingAudioSink()
	sink.gate(lambda: state["on"])

	assert sink.play("sine", note=60) is False
	assert sink.events == []

	state["on"] = True

	assert sink.play("sine", note=60) is True
	assert len(sink.events) == 1


def test_null_sink_accepts_everything () -> None:

	sink = voicefield.audio.NullAudioSink()

	assert sink.play("anything", amp=1) is True
	assert sink.sent == 1
