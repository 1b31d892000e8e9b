"""The voice set: one module per piece, each exposing ``build(engine)``.

- ``root_sleep`` - an hours-long sleep soundscape on a time-based terminal form.
- ``emerald_rite`` - a dub ritual on a bar-threshold terminal form.
- ``abyssal_conduit`` - a looping beat-based form of Euclidean pulses and chant.

Pitch, chord and motif tables inside each module are plain data; the engine
passes them through without interpreting them.
"""

import typing

from voicefield.pieces import abyssal_conduit, emerald_rite, root_sleep

if typing.TYPE_CHECKING:
	from voicefield.engine import Engine


PIECES: typing.Dict[str, typing.Callable[["Engine"], None]] = {
	"root_sleep": root_sleep.build,
	"emerald_rite": emerald_rite.build,
	"abyssal_conduit": abyssal_conduit.build,
}


def build (name: str, engine: "Engine") -> None:

	"""Register the piece *name* on *engine*.

	Raises:
		ValueError: If no such piece exists.
	"""

	if name not in PIECES:
		available = ", ".join(sorted(PIECES))
		raise ValueError(f"Unknown piece {name!r}. Available pieces: {available}")

	PIECES[name](engine)
