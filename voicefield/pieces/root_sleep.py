"""Root sleep: a slow, sleep-safe field that settles over hours.

Form (time-based, terminal)::

	winddown (guide_duration) → descent (descent_duration) → sleep (for ever)

One shared *climate* stream wanders slowly and biases almost every layer,
so the whole field breathes together instead of making many independent
decisions.  Chimes fade out over ``chime_fade_duration`` seconds after sleep
begins and then never return.

Everything here is geological time, so the piece runs at 60 BPM where one
beat is one second.
"""

import dataclasses
import logging
import typing

import voicefield.constants.midi
import voicefield.constants.pitches
import voicefield.sequence_utils
import voicefield.state_bus
import voicefield.trigger
import voicefield.voice

if typing.TYPE_CHECKING:
	from voicefield.engine import Engine


logger = logging.getLogger(__name__)


BPM = 60

CHANNELS: typing.Dict[str, int] = {
	"drone": 1,
	"pulse": 2,
	"wind": 3,
	"chime": 4,
	"whisper": 5,
}

WINDDOWN = "winddown"
DESCENT = "descent"
SLEEP = "sleep"

# Drone bed
DRONE_NOTE = "c2"
DRONE_AMP = 0.28
DRONE_CUTOFF = 75
DRONE_SUSTAIN = 24

# Binaural pair
BINAURAL_CARRIER_HZ = 100.0
BINAURAL_BEAT_HZ = 3.0
BINAURAL_AMP = 0.045

# Wind / breath
WIND_AMP = 0.14
WIND_CUTOFF = 80

# Micro-chime
CHIME_AMP = 0.035
CHIME_VELOCITY = 48
CHIME_SCALE = voicefield.constants.pitches.notes(["c4", "eb4", "f4", "g4", "bb4"])

# Whisper motifs
WHISPER_AMP = 0.04
WHISPER_MOTIFS: typing.List[typing.List[int]] = [
	voicefield.constants.pitches.notes(["a3", "a3", "e3"]),
	voicefield.constants.pitches.notes(["g3", "e3", "g3"]),
	voicefield.constants.pitches.notes(["c3", "c3", "g2"]),
	voicefield.constants.pitches.notes(["d3", "c3", "d3"]),
]
WHISPER_GAPS = [0.6, 0.9, 1.2]
WHISPER_REST = 8

GUIDE_AMP = 0.9

PULSE_NOTE = voicefield.constants.pitches.note("c1")


@dataclasses.dataclass(frozen=True)
class WhisperDensity:

	"""Chance per cycle that a whisper motif is uttered."""

	chance: float


WHISPER: typing.Dict[str, WhisperDensity] = {
	WINDDOWN: WhisperDensity(0.24),
	DESCENT: WhisperDensity(0.12),
	SLEEP: WhisperDensity(0.06),
}


def pulse_range (v: voicefield.voice.VoiceContext) -> typing.Tuple[float, float]:

	"""Sub-pulse period range for the current phase (sleep has its own; the rest share winddown's)."""

	ranges = v.config.pulse_period_range
	fallback = ranges.get(WINDDOWN, (8.0, 15.0))

	if v.section == SLEEP:
		return ranges.get(SLEEP, fallback)

	return fallback


# ─── Voices ───────────────────────────────────────────────────────────────────


def climate (v: voicefield.voice.VoiceContext) -> float:

	"""The single slow control stream; the only writer of ``climate``."""

	if not v.config.climate_enabled:
		return v.seconds(10)

	if v.steps == 0:
		v.claim(voicefield.state_bus.CLIMATE)

	value = v.wander(0.0, depth=v.config.climate_depth, step=0.05, key="climate")
	v.set(voicefield.state_bus.CLIMATE, value)

	return v.seconds(v.config.climate_update)


def binaural (v: voicefield.voice.VoiceContext) -> float:

	if not v.config.binaural_enabled:
		return v.seconds(2)

	drift = v.climate * 1.2
	left = BINAURAL_CARRIER_HZ + drift
	right = left + BINAURAL_BEAT_HZ

	for hz, pan in ((left, -1), (right, 1)):
		v.play(
			"sine",
			note = voicefield.constants.pitches.hz_to_midi(hz),
			amp = BINAURAL_AMP,
			pan = pan,
			attack = 2,
			sustain = 10,
			release = 2
		)

	return v.seconds(12)


def drone_bed (v: voicefield.voice.VoiceContext) -> float:

	"""Deep fundamental with wandered cutoff and detune, mirrored to MIDI as a held note plus CC 74."""

	c = v.climate

	cutoff = v.wander(DRONE_CUTOFF + c * 18, depth=7, step=0.03, key="cutoff")
	detune = v.wander(c * 0.08, depth=0.10, step=0.02, key="detune")
	amp = DRONE_AMP * (1.0 + c * 0.18)

	base = voicefield.constants.pitches.note(DRONE_NOTE)

	v.play("tri", note=base, amp=amp * 0.65, attack=6, sustain=24, release=6, detune=detune, cutoff=cutoff)
	v.play("sine", note=base - 12, amp=amp * 0.35, attack=8, sustain=26, release=8, cutoff=cutoff)
	v.play("sine", note=base + 12, amp=amp * 0.10, attack=10, sustain=18, release=10, cutoff=cutoff)

	channel = v.channel("drone", CHANNELS["drone"])
	v.cc(voicefield.constants.midi.CUTOFF, cutoff, channel)
	v.hold(base, velocity=round(60 * (1.0 + c * 0.18)), channel=channel, duration=v.seconds(DRONE_SUSTAIN))

	return v.seconds(DRONE_SUSTAIN)


def sub_pulse (v: voicefield.voice.VoiceContext) -> float:

	"""A non-periodic gravity pulse; in heavier climate moments it drifts slower."""

	low, high = pulse_range(v)
	period = voicefield.sequence_utils.clamp(v.rrand(low, high) + v.climate * 2.0, low, high)

	v.play("sine", note=PULSE_NOTE, amp=0.10, attack=1.0, sustain=0.35, release=3.2)
	v.play("tri", note=PULSE_NOTE + 12, amp=0.03, attack=1.1, sustain=0.2, release=2.8)
	v.note(PULSE_NOTE, velocity=40, channel=v.channel("pulse", CHANNELS["pulse"]), duration=v.seconds(1.35))

	return v.seconds(period)


def wind_breath (v: voicefield.voice.VoiceContext) -> float:

	c0 = v.climate

	cutoff = v.wander(WIND_CUTOFF + c0 * 20, depth=14, step=0.04, key="cutoff")
	amp = v.wander(WIND_AMP * (1.0 + c0 * 0.16), depth=0.04, step=0.03, key="amp")

	v.play("bnoise", amp=amp, cutoff=cutoff, attack=5, sustain=11, release=5)
	v.cc(voicefield.constants.midi.CUTOFF, cutoff, v.channel("wind", CHANNELS["wind"]))

	return v.seconds(14)


def micro_chime (v: voicefield.voice.VoiceContext) -> float:

	"""Rare bells during sleep, fading out over ``chime_fade_duration`` from the start of sleep."""

	if not v.config.chime_enabled:
		return v.seconds(10)

	trigger: typing.Optional[voicefield.trigger.FadingTrigger] = v.local.get("trigger")

	if trigger is None:
		trigger = voicefield.trigger.FadingTrigger(
			base_odds = voicefield.trigger.odds_from_chance(v.config.chime_odds),
			window = v.config.chime_fade_duration
		)
		v.local["trigger"] = trigger

	if v.section == SLEEP:

		trigger.start(float(v.get(voicefield.state_bus.SECTION_STARTED_AT, v.now)))
		fade = trigger.fade(v.now)

		if trigger.fire(v.now, v.rng):
			pitch = v.choose(CHIME_SCALE)
			v.play("pretty_bell", note=pitch, amp=CHIME_AMP * fade, attack=0.7, sustain=0.15, release=4.0, pan=v.rrand(-0.35, 0.35))
			v.note(pitch, velocity=max(1, round(CHIME_VELOCITY * fade)), channel=v.channel("chime", CHANNELS["chime"]), duration=v.seconds(1.0))
			logger.debug(f"chime {pitch} (fade {fade:.2f})")

	return v.seconds(20)


def whisper (v: voicefield.voice.VoiceContext) -> float:

	"""Sparse three-note motifs, one note per step, dense in winddown and almost absent in sleep."""

	if not v.config.whisper_enabled:
		return v.seconds(10)

	motif: typing.List[int] = v.local.setdefault("motif", [])

	if not motif:
		density = WHISPER.get(v.section or WINDDOWN, WHISPER[SLEEP])

		if not v.chance(density.chance):
			return v.seconds(WHISPER_REST)

		motif.extend(v.choose(WHISPER_MOTIFS))

	pitch = motif.pop(0)
	v.play("hollow", note=pitch, amp=WHISPER_AMP, attack=0.8, sustain=0.1, release=2.2, pan=v.rrand(-0.35, 0.35))
	v.note(pitch, velocity=30, channel=v.channel("whisper", CHANNELS["whisper"]), duration=v.seconds(0.9))

	gap = v.choose(WHISPER_GAPS)

	if not motif:
		return v.seconds(gap + WHISPER_REST)

	return v.seconds(gap)


def guided_voice (v: voicefield.voice.VoiceContext) -> float:

	"""Optional narration sample, started once at the beginning of the winddown."""

	if not v.config.guide_sample:
		return v.seconds(2)

	if v.section == WINDDOWN:
		v.play("sample", path=v.config.guide_sample, amp=GUIDE_AMP)
		return v.seconds(v.config.guide_duration)

	return v.seconds(5)


def build (engine: "Engine") -> None:

	"""Register the root sleep form and voices."""

	engine.use_bpm(BPM)
	engine.use_channels(CHANNELS)

	engine.form(
		[
			(WINDDOWN, engine.config.guide_duration),
			(DESCENT, engine.config.descent_duration),
			(SLEEP, None),
		],
		unit = "seconds"
	)

	engine.add_voice(climate)
	engine.add_voice(binaural)
	engine.add_voice(drone_bed)
	engine.add_voice(sub_pulse)
	engine.add_voice(wind_breath)
	engine.add_voice(micro_chime)
	engine.add_voice(whisper)
	engine.add_voice(guided_voice)
