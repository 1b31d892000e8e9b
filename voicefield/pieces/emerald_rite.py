"""Emerald rite: a one-drop dub ritual on a bar-threshold form.

Form (bars, terminal)::

	intro 1-32 → groove 33-96 → axis 97-128 → edict 129-160 → dissolve 161+

Drums, skank and sub bass carry groove, axis and edict; the halo, siren and
tablet phrases mark the quieter sections.  The sub bass holds each note
while a short mod-wheel ramp runs underneath it, wider and more assertive
as the form moves from groove to edict, then one long falling ramp in
dissolve.

Shared knobs (adjustable at runtime through the bus or OSC ``/set``):
``skank_cutoff``, ``bass_cutoff`` and ``swing``.
"""

import dataclasses
import typing

import voicefield.constants.gm_drums
import voicefield.constants.midi
import voicefield.constants.pitches
import voicefield.voice

if typing.TYPE_CHECKING:
	from voicefield.engine import Engine


BPM = 72

CHANNELS: typing.Dict[str, int] = {
	"drums": 10,
	"bass": 1,
	"skank": 2,
	"halo": 3,
	"phrase": 4,
	"siren": 5,
}

THRESHOLDS: typing.Dict[int, str] = {
	1: "intro",
	33: "groove",
	97: "axis",
	129: "edict",
	161: "dissolve",
}

KNOBS: typing.Dict[str, typing.Any] = {
	"skank_cutoff": 95,
	"bass_cutoff": 75,
	"swing": 0.03,
}

INTRO = "intro"
GROOVE = "groove"
AXIS = "axis"
EDICT = "edict"
DISSOLVE = "dissolve"

DRIVEN = (GROOVE, AXIS, EDICT)

SKANK_CHORDS = [
	voicefield.constants.pitches.notes(["e3", "g3", "b3", "d4"]),    # Em7
	voicefield.constants.pitches.notes(["g3", "bb3", "d4", "f4"]),   # Gm7
	voicefield.constants.pitches.notes(["a3", "d4", "e4"]),          # Asus4
	voicefield.constants.pitches.notes(["b2", "d3", "f#3", "a3"]),   # Bm7
]

BASSLINE = voicefield.constants.pitches.notes(["e1", "e1", "g1", "b0", "a0", "e1", "g1", "d1"])

HALO_NOTES = voicefield.constants.pitches.notes(["e5", "g5", "b5", "d6"])

SIREN_NOTES = voicefield.constants.pitches.notes(["e4", "g4", "a4", "b4"])

# Mod wheel (CC 1) pressure patterns for the sub bass
MW_GROOVE = [28, 34, 40, 46, 52, 46, 40, 34]
MW_AXIS = [42, 54, 66, 78, 70, 60, 50, 58]
MW_EDICT = [72, 84, 96, 110, 102, 92, 118, 88]
MW_DISSOLVE = [64, 56, 48, 40, 32, 24, 16, 8, 0]


# ─── Section variants ─────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class KickDrop:

	"""One-drop kick: a hit, a wait, an accented hit on beat four."""

	velocity: int
	accent: int
	amp: float


@dataclasses.dataclass(frozen=True)
class KickHeartbeat:

	velocity: int
	amp: float


@dataclasses.dataclass(frozen=True)
class HatRun:

	velocity: int
	step: float
	amp: float
	rate: float


@dataclasses.dataclass(frozen=True)
class BassPressure:

	"""A held bass note with a mod-wheel ramp of *steps* values from *wheel*."""

	velocity: int
	wheel: typing.List[int]
	steps: int


@dataclasses.dataclass(frozen=True)
class BassTail:

	"""One long note falling into silence under the full *wheel* ramp."""

	pitch: str
	velocity: int
	wheel: typing.List[int]
	length: float


@dataclasses.dataclass(frozen=True)
class Litany:

	"""Fixed run of utterances, each followed by its own rest in beats."""

	steps: typing.Tuple[typing.Tuple[str, float], ...]


@dataclasses.dataclass(frozen=True)
class Scatter:

	"""An occasional single utterance picked from *choices*, one chance in *odds* per cycle."""

	choices: typing.Tuple[str, ...]
	odds: float
	rest: float


@dataclasses.dataclass(frozen=True)
class Gesture:

	"""One note of an utterance; *wait* is the gap before the next note of the same utterance."""

	pitch: str
	length: float
	velocity: int
	amp: float
	wait: float = 0.0


KICK: typing.Dict[str, typing.Union[KickDrop, KickHeartbeat]] = {
	GROOVE: KickDrop(velocity=100, accent=112, amp=1.4),
	AXIS: KickDrop(velocity=100, accent=112, amp=1.4),
	EDICT: KickDrop(velocity=100, accent=112, amp=1.9),
	DISSOLVE: KickHeartbeat(velocity=60, amp=0.9),
}

HATS: typing.Dict[str, HatRun] = {
	GROOVE: HatRun(velocity=50, step=0.5, amp=0.25, rate=1.3),
	AXIS: HatRun(velocity=50, step=0.5, amp=0.25, rate=1.3),
	EDICT: HatRun(velocity=40, step=1.0, amp=0.16, rate=1.2),
}

BASS: typing.Dict[str, typing.Union[BassPressure, BassTail]] = {
	GROOVE: BassPressure(velocity=95, wheel=MW_GROOVE, steps=1),
	AXIS: BassPressure(velocity=95, wheel=MW_AXIS, steps=2),
	EDICT: BassPressure(velocity=110, wheel=MW_EDICT, steps=3),
	DISSOLVE: BassTail(pitch="e1", velocity=70, wheel=MW_DISSOLVE, length=4),
}

BASS_SUSTAIN = 0.9

UTTERANCES: typing.Dict[str, typing.Tuple[Gesture, ...]] = {
	"alethe": (Gesture("e4", 1.0, 44, 0.22, wait=1.0), Gesture("b3", 0.9, 40, 0.18)),
	"lyare": (Gesture("g4", 0.6, 42, 0.18),),
	"mer_ra": (Gesture("e3", 0.25, 52, 0.22, wait=0.25), Gesture("g3", 0.5, 50, 0.22, wait=0.5), Gesture("e3", 0.75, 48, 0.22)),
	"truen": (Gesture("b3", 0.3, 46, 0.20),),
	"los": (Gesture("e3", 0.1, 70, 0.35),),
	"nyathe": (Gesture("d5", 1.0, 38, 0.16),),
	"sur": (Gesture("e2", 1.0, 52, 0.22),),
	"zuur_ka": (Gesture("g2", 0.5, 52, 0.22, wait=0.25), Gesture("e3", 0.4, 48, 0.18)),
	"fal_ta": (Gesture("e2", 0.9, 56, 0.25, wait=0.25), Gesture("b1", 0.9, 54, 0.22)),
}

PHRASES: typing.Dict[str, typing.Union[Litany, Scatter]] = {
	INTRO: Litany((("alethe", 3), ("lyare", 5), ("mer_ra", 7))),
	GROOVE: Scatter(choices=("mer_ra", "truen", "lyare"), odds=4, rest=8),
	AXIS: Litany((("nyathe", 2), ("sur", 2), ("zuur_ka", 2), ("fal_ta", 4))),
	EDICT: Litany((("nyathe", 1), ("sur", 1), ("los", 2), ("mer_ra", 2))),
	DISSOLVE: Litany((("alethe", 8),)),
}


def swung (v: voicefield.voice.VoiceContext, step: float) -> float:

	"""Lengthen every other step by the ``swing`` knob."""

	if v.tick("swing") % 2 == 0:
		return step + float(v.get("swing", KNOBS["swing"]))

	return step


# ─── Drums ────────────────────────────────────────────────────────────────────


def kick (v: voicefield.voice.VoiceContext) -> float:

	variant = KICK.get(v.section or INTRO)
	channel = v.channel("drums", CHANNELS["drums"])

	if isinstance(variant, KickDrop):

		# Alternates the downbeat (sleep 3) and the beat-four accent (sleep 1).
		if v.tick("drop") % 2 == 0:
			v.note(voicefield.constants.gm_drums.KICK_1, velocity=variant.velocity, channel=channel, duration=0.06)
			v.play("bd_fat", amp=1.6)
			return 3

		v.note(voicefield.constants.gm_drums.KICK_1, velocity=variant.accent, channel=channel, duration=0.06)
		v.play("bd_fat", amp=variant.amp)
		return 1

	v.reset_tick("drop")

	if isinstance(variant, KickHeartbeat):
		v.note(voicefield.constants.gm_drums.KICK_1, velocity=variant.velocity, channel=channel, duration=0.06)
		v.play("bd_fat", amp=variant.amp)

	return 4


def snare (v: voicefield.voice.VoiceContext) -> float:

	"""A distant ritual stamp on beat three."""

	if v.section in DRIVEN:

		# Rest two beats, then hit and rest two more.
		if v.tick("stamp") % 2 == 0:
			return 2

		v.note(voicefield.constants.gm_drums.SNARE_1, velocity=92, channel=v.channel("drums", CHANNELS["drums"]), duration=0.05)
		v.play("sn_dolf", amp=1.2 if v.section == EDICT else 0.9, rate=0.9)
		return 2

	v.reset_tick("stamp")

	if v.section == DISSOLVE:
		return 8

	return 4


def hats (v: voicefield.voice.VoiceContext) -> float:

	run = HATS.get(v.section or INTRO)

	if run is None:
		v.reset_tick("swing")
		return 4

	v.note(voicefield.constants.gm_drums.HI_HAT_CLOSED, velocity=run.velocity, channel=v.channel("drums", CHANNELS["drums"]), duration=0.03)
	v.play("drum_cymbal_closed", amp=run.amp, rate=run.rate)

	return swung(v, run.step)


# ─── Skank ────────────────────────────────────────────────────────────────────


def skank (v: voicefield.voice.VoiceContext) -> float:

	"""Offbeat chord stabs: cutoff, rest 0.5, stab, rest 2.5, stab, rest 1."""

	if v.section not in DRIVEN:
		v.reset_tick("phase")
		return 4

	channel = v.channel("skank", CHANNELS["skank"])
	cutoff = v.get("skank_cutoff", KNOBS["skank_cutoff"])
	phase = v.tick("phase") % 3

	if phase == 0:
		v.cc(voicefield.constants.midi.CUTOFF, cutoff, channel)
		return 0.5

	pitches = v.ring(SKANK_CHORDS, "chord")

	if phase == 1:
		v.chord(pitches, velocity=76, channel=channel, duration=0.16)
		for pitch in pitches:
			v.play("pluck", note=pitch, amp=0.45, release=0.18, cutoff=cutoff, pan=-0.2)
		return 2.5

	v.chord(pitches, velocity=82, channel=channel, duration=0.16)
	for pitch in pitches:
		v.play("pluck", note=pitch, amp=0.50, release=0.18, cutoff=cutoff, pan=0.25)

	return 1


# ─── Sub bass ─────────────────────────────────────────────────────────────────


def sub_bass (v: voicefield.voice.VoiceContext) -> float:

	"""Held bass with the mod wheel moving under it; the ramp and the note-off run on their own."""

	variant = BASS.get(v.section or INTRO)
	channel = v.channel("bass", CHANNELS["bass"])
	jitter = v.config.cc_jitter

	if isinstance(variant, BassPressure):

		v.cc(voicefield.constants.midi.CUTOFF, v.get("bass_cutoff", KNOBS["bass_cutoff"]), channel)

		pitch = v.ring(BASSLINE, "bass")
		wheel = [v.ring(variant.wheel, "mw") for _ in range(variant.steps)]

		v.hold(pitch, velocity=variant.velocity, channel=channel, duration=BASS_SUSTAIN)
		v.ramp(voicefield.constants.midi.MOD_WHEEL, channel, wheel, duration=BASS_SUSTAIN, jitter=jitter)
		v.play("fm", note=pitch, amp=1.2, attack=0.01, sustain=0.85, release=0.2, cutoff=v.get("bass_cutoff", KNOBS["bass_cutoff"]))

		return 1

	if isinstance(variant, BassTail):
		v.hold(variant.pitch, velocity=variant.velocity, channel=channel, duration=variant.length)
		v.ramp(voicefield.constants.midi.MOD_WHEEL, channel, variant.wheel, duration=variant.length, jitter=jitter)

		# The wheel rests at exactly 0 however the last jittered step landed.
		v.later(variant.length, lambda: v.cc(voicefield.constants.midi.MOD_WHEEL, 0, channel))
		return variant.length

	v.cc(voicefield.constants.midi.MOD_WHEEL, 0, channel)
	return 1


# ─── Halo, siren, phrases ─────────────────────────────────────────────────────


def spire_halo (v: voicefield.voice.VoiceContext) -> float:

	"""Sparse witness tones above the field."""

	if v.section not in (INTRO, AXIS, DISSOLVE):
		return 4

	pitch = v.choose(HALO_NOTES)

	v.note(pitch, velocity=40, channel=v.channel("halo", CHANNELS["halo"]), duration=1.0)
	v.play("hollow", note=pitch, amp=0.25 if v.section == INTRO else 0.18, attack=0.3, release=1.8, pan=v.rrand(-0.4, 0.4))

	return 4 if v.section == INTRO else 6


def dub_siren (v: voicefield.voice.VoiceContext) -> float:

	"""An occasional rising fifth; the second note lands a sixteenth later."""

	if v.local.get("answer") is not None:
		second = v.local.pop("answer")
		v.note(second, velocity=64, channel=v.channel("siren", CHANNELS["siren"]), duration=0.45)
		v.play("blade", note=second, amp=0.22, attack=0.01, sustain=0.20, release=0.7, cutoff=105)
		return 6

	if v.section in (GROOVE, AXIS) and v.one_in(6):
		first = v.choose(SIREN_NOTES)
		v.note(first, velocity=70, channel=v.channel("siren", CHANNELS["siren"]), duration=0.25)
		v.play("blade", note=first, amp=0.25, attack=0.02, sustain=0.25, release=0.6, cutoff=95)
		v.local["answer"] = first + 7
		return 0.25

	return 4


def _queue_phrase (v: voicefield.voice.VoiceContext, plan: typing.Union[Litany, Scatter]) -> typing.List[typing.Tuple[Gesture, float]]:

	"""Expand a section's plan into ``(gesture, sleep)`` pairs."""

	queue: typing.List[typing.Tuple[Gesture, float]] = []

	if isinstance(plan, Scatter):
		if not v.one_in(plan.odds):
			return []
		steps: typing.Tuple[typing.Tuple[str, float], ...] = ((v.choose(plan.choices), plan.rest),)
	else:
		steps = plan.steps

	for name, rest in steps:
		gestures = UTTERANCES[name]
		for i, gesture in enumerate(gestures):
			last = i == len(gestures) - 1
			queue.append((gesture, gesture.wait + rest if last else gesture.wait))

	return queue


def tablet_phrases (v: voicefield.voice.VoiceContext) -> float:

	"""Sparse chant motifs: each section has its own litany of utterances, one note per step."""

	section = v.section or INTRO
	plan = PHRASES.get(section)

	if plan is None:
		return 4

	queue: typing.List[typing.Tuple[Gesture, float]] = v.local.setdefault("queue", [])

	if v.local.get("queued_for") != section:
		queue.clear()
		v.local["queued_for"] = section

	if not queue:
		queue.extend(_queue_phrase(v, plan))

		if not queue:
			return plan.rest if isinstance(plan, Scatter) else 4

	gesture, sleep = queue.pop(0)

	v.note(gesture.pitch, velocity=gesture.velocity, channel=v.channel("phrase", CHANNELS["phrase"]), duration=gesture.length)
	v.play("prophet", note=voicefield.constants.pitches.note(gesture.pitch), amp=gesture.amp, release=gesture.length + 0.5)

	return sleep


def dust (v: voicefield.voice.VoiceContext) -> float:

	"""Tape dust: tiny clicks and air, audio only."""

	if v.section not in (INTRO, AXIS, DISSOLVE):
		return 2

	if v.one_in(3):
		v.play("elec_tick", amp=0.06)

	if v.one_in(5):
		v.play("perc_snap", amp=0.04, rate=0.8)

	return 1


def build (engine: "Engine") -> None:

	"""Register the emerald rite form, knobs and voices."""

	engine.use_bpm(BPM)
	engine.use_channels(CHANNELS)
	engine.defaults(KNOBS)
	engine.form(thresholds=THRESHOLDS)

	for fn in (kick, snare, hats, skank, sub_bass, spire_halo, dub_siren, tablet_phrases, dust):
		engine.add_voice(fn)
