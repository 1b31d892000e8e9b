"""
Voicefield Demo - Engine API

A small dub field in E minor, built from scratch rather than from one of
the bundled pieces.

How to read this file
─────────────────────
1. Config   - Load config.yaml (or defaults) and build an engine.
2. Form     - Bars 1-8 intro, 9-24 groove, then dissolve for ever.
3. Knobs    - Shared values any voice can read and OSC can change.
4. Voices   - Decorated functions. Each receives a context (v), emits, and
              returns how many beats to sleep before its next step.
5. Play     - Runs until Ctrl+C; owed note-offs drain before exit.

Musical overview
────────────────
The kick and the bass run from the groove onwards; the bass holds each note
while the mod wheel ramps underneath it.  A sparse bell wanders above the
whole form and thins out as it goes.  Set ``render`` below to a number of
seconds to render offline instead of playing.
"""

import logging

import voicefield
import voicefield.constants.gm_drums
import voicefield.constants.midi
import voicefield.constants.pitches


logging.basicConfig(level=logging.INFO)


render = None


# ─── Config ──────────────────────────────────────────────────────────

config = voicefield.load_config("config.yaml")

engine = voicefield.Engine(
	config,
	clock = voicefield.VirtualClock() if render else None
)

engine.use_bpm(70)
engine.use_channels({"drums": 10, "bass": 1, "bell": 3})


# ─── Form ────────────────────────────────────────────────────────────

engine.form(thresholds={1: "intro", 9: "groove", 25: "dissolve"})


# ─── Knobs ───────────────────────────────────────────────────────────

engine.defaults({"bell_odds": 3})


# ─── Voices ──────────────────────────────────────────────────────────

BASSLINE = voicefield.constants.pitches.notes(["e1", "g1", "b0", "d1"])
BELLS = voicefield.constants.pitches.notes(["e5", "g5", "b5"])


@engine.voice()
def kick (v):

	if v.section == "groove":
		v.note(voicefield.constants.gm_drums.KICK_1, velocity=100, channel=v.channel("drums"), duration=0.06)

	return 2


@engine.voice(sync="kick")
def bass (v):

	if v.section != "groove":
		return 4

	channel = v.channel("bass")

	v.hold(v.ring(BASSLINE), velocity=90, channel=channel, duration=1.8)
	v.ramp(voicefield.constants.midi.MOD_WHEEL, channel, [30, 50, 70], duration=1.8, jitter=2)

	return 2


@engine.voice()
def bell (v):

	odds = v.get("bell_odds", 3)

	if v.section == "dissolve":
		odds *= 2

	if v.one_in(odds):
		v.note(v.choose(BELLS), velocity=int(v.wander(50, depth=10, key="vel")), channel=v.channel("bell"), duration=1)

	return 3


# ─── Play ────────────────────────────────────────────────────────────

if __name__ == "__main__":

	if render:
		engine.render(render)
		engine.finish()

	else:
		engine.play()
