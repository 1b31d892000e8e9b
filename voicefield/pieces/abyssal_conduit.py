"""Abyssal conduit: Euclidean pulses, a root-led bass and a ritual chant.

Form (beats, looping)::

	intro 32 → rise 64 → ritual 96 → intro ...

The bus keys ``root`` (a note name) and ``density`` (0 to 1) shape every
voice and can be changed while the piece runs; ``bass`` and ``hats`` start
on the ``thump`` grid.
"""

import dataclasses
import typing

import voicefield.constants.gm_drums
import voicefield.constants.pitches
import voicefield.sequence_utils
import voicefield.voice

if typing.TYPE_CHECKING:
	from voicefield.engine import Engine


BPM = 72

CHANNELS: typing.Dict[str, int] = {
	"drums": 10,
	"bass": 1,
	"sub": 2,
	"drone": 3,
	"chant": 4,
	"hats": 5,
}

INTRO = "intro"
RISE = "rise"
RITUAL = "ritual"

SECTIONS = [(INTRO, 32), (RISE, 64), (RITUAL, 96)]

KNOBS: typing.Dict[str, typing.Any] = {
	"root": "e2",
	"density": 0.55,
}

STEPS = 16

SWING = [0.25, 0.25, 0.25, 0.25, 0.25, 0.23, 0.27, 0.25]

HAT_PATTERN = voicefield.sequence_utils.generate_euclidean_sequence(STEPS, 11)

MINOR_PENTATONIC = [0, 3, 5, 7, 10]

CHANT_DEGREES = [0, 0, 3, 0, 5, 3, 7, 3]
CHANT_LENGTHS = [0.2, 0.25, 0.35, 0.18]
CHANT_RHYTHM = [0.5, 0.25, 0.25, 0.5, 1.0]


@dataclasses.dataclass(frozen=True)
class Pulse:

	"""Euclidean kick pattern: *pulses* hits spread over sixteen steps."""

	pulses: int

	@property
	def pattern (self) -> typing.List[int]:
		return voicefield.sequence_utils.generate_euclidean_sequence(STEPS, self.pulses)


@dataclasses.dataclass(frozen=True)
class BassFigure:

	"""Semitone offsets from the root, cycled one per half beat."""

	offsets: typing.Tuple[int, ...]
	length: float


@dataclasses.dataclass(frozen=True)
class DroneBreath:

	hold: float
	gap: float


THUMP: typing.Dict[str, Pulse] = {
	INTRO: Pulse(3),
	RISE: Pulse(5),
	RITUAL: Pulse(7),
}

BASS: typing.Dict[str, BassFigure] = {
	INTRO: BassFigure(offsets=(0, 0, -5, 0), length=0.35),
	RISE: BassFigure(offsets=(0, -5, -7, 0), length=0.5),
	RITUAL: BassFigure(offsets=(0, -5, -7, 0), length=0.5),
}

DRONE: typing.Dict[str, DroneBreath] = {
	INTRO: DroneBreath(hold=6, gap=2),
	RISE: DroneBreath(hold=4, gap=1),
	RITUAL: DroneBreath(hold=4, gap=1),
}


def root (v: voicefield.voice.VoiceContext) -> int:
	return voicefield.constants.pitches.note(v.get("root", KNOBS["root"]))


def density (v: voicefield.voice.VoiceContext) -> float:
	return voicefield.sequence_utils.clamp(float(v.get("density", KNOBS["density"])), 0.0, 1.0)


def pentatonic (tonic: int, octaves: int = 2) -> typing.List[int]:

	"""Minor pentatonic from *tonic* over *octaves*, closed with the top tonic."""

	degrees = [tonic + 12 * octave + step for octave in range(octaves) for step in MINOR_PENTATONIC]
	return degrees + [tonic + 12 * octaves]


# ─── Voices ───────────────────────────────────────────────────────────────────


def thump (v: voicefield.voice.VoiceContext) -> float:

	"""Kick plus a short sub body on a Euclidean grid, thicker each section."""

	d = density(v)
	pulse = THUMP.get(v.section or INTRO, THUMP[INTRO])
	step = v.tick("step") % STEPS

	if pulse.pattern[step] and v.chance(0.85 + d * 0.1):
		v.note(voicefield.constants.gm_drums.KICK_1, velocity=int(90 + d * 30), channel=v.channel("drums", CHANNELS["drums"]), duration=0.04)
		v.note(root(v), velocity=int(70 + d * 40), channel=v.channel("sub", CHANNELS["sub"]), duration=0.18)

	return v.ring(SWING, "swing")


def bass (v: voicefield.voice.VoiceContext) -> float:

	figure = BASS.get(v.section or INTRO, BASS[INTRO])
	offset = v.ring(figure.offsets, "figure")
	d = density(v)

	v.note(root(v) + offset, velocity=int(75 + d * 45), channel=v.channel("bass", CHANNELS["bass"]), duration=figure.length)

	return 0.5


def drone (v: voicefield.voice.VoiceContext) -> float:

	"""Slow minor triad bed: hold, then breathe."""

	breath = DRONE.get(v.section or INTRO, DRONE[INTRO])
	tonic = root(v)

	v.chord([tonic, tonic + 3, tonic + 7], velocity=int(45 + density(v) * 20), channel=v.channel("drone", CHANNELS["drone"]), duration=breath.hold)

	return breath.hold + breath.gap


def hats (v: voicefield.voice.VoiceContext) -> float:

	if v.section != INTRO:
		d = density(v)
		hit = voicefield.sequence_utils.ring(HAT_PATTERN, v.tick("hat"))

		if hit and v.chance(0.6 + d * 0.25):
			v.note(voicefield.constants.gm_drums.HI_HAT_CLOSED, velocity=int(25 + d * 55), channel=v.channel("hats", CHANNELS["hats"]), duration=0.04)

	return 0.25


def chant (v: voicefield.voice.VoiceContext) -> float:

	"""A pentatonic vowel line, only in the ritual; the occasional octave flicker stands in for detune."""

	d = density(v)
	pitch = pentatonic(root(v))[v.ring(CHANT_DEGREES, "degree")]

	if v.section == RITUAL and v.chance(0.45 + d * 0.25):

		if v.chance(0.12):
			pitch += 12

		v.note(pitch, velocity=int(35 + d * 55), channel=v.channel("chant", CHANNELS["chant"]), duration=v.ring(CHANT_LENGTHS, "length"))

	return v.ring(CHANT_RHYTHM, "rhythm")


def build (engine: "Engine") -> None:

	engine.use_bpm(BPM)
	engine.use_channels(CHANNELS)
	engine.defaults(KNOBS)
	engine.form(SECTIONS, unit="beats", loop=True)

	engine.add_voice(thump)
	engine.add_voice(bass, sync="thump")
	engine.add_voice(drone)
	engine.add_voice(hats, sync="thump")
	engine.add_voice(chant)
