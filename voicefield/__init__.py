
"""
Voicefield - a procedural control-stream engine for long-running generative pieces.

Voicefield runs many independent *voices* side by side.  Each voice is a
plain Python function that wakes, reads shared state, decides what to play
and returns how long to sleep.  The engine turns those decisions into MIDI
notes and controller ramps (and, optionally, play events for an external
audio engine over OSC), while a conductor walks the piece through its macro
form.  Nothing here synthesises sound.

What it provides:

- **Cooperative scheduling.** One event loop, many voices, each on its own
  timeline.  A voice that raises is logged and retired; the rest play on.
- **A shared state bus.** Named keys with single-writer ownership, change
  listeners and live toggles (``send_midi``, ``play_audio``, ``send_cc``,
  ``panic``, ``force_port``, ``debug_heartbeat``, ``stop_all``).
- **Macro form.** Counter-based (bars) or time-based (beats, seconds),
  looping or ending in a terminal section, with cue events on every
  transition.
- **Safe MIDI.** Every note-on owes exactly one note-off, delivered on its
  own timeline even if the voice that started it has moved on; panic sends
  All Notes Off on every configured channel.
- **Controller ramps.** Step a CC through a value list over a duration,
  with optional jitter, while a held note sounds.
- **Slow drift.** ``wander()`` random walks and a fading probability
  trigger for events that should thin out over hours.
- **Deterministic rendering.** Run on a virtual clock with a fixed seed to
  reproduce a session exactly, faster than real time.

Minimal example:

	```python
	import voicefield

	engine = voicefield.Engine(voicefield.load_config())
	engine.use_bpm(72)
	engine.form(thresholds={1: "intro", 9: "groove"})

	@engine.voice()
	def kick (v):

		if v.section == "groove":
			v.note(36, velocity=100, channel=10, duration=0.06)

		return 1

	engine.play()
	```

Package-level exports: ``Engine``, ``Config``, ``load_config``,
``VirtualClock``, ``WallClock``, ``PIECES``.
"""

import voicefield.config
import voicefield.engine
import voicefield.pieces
import voicefield.scheduler


Engine = voicefield.engine.Engine
Config = voicefield.config.Config
load_config = voicefield.config.load_config
VirtualClock = voicefield.scheduler.VirtualClock
WallClock = voicefield.scheduler.WallClock
PIECES = voicefield.pieces.PIECES
