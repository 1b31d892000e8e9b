"""Note-name parsing.

Convention: **C4 = 60** (Middle C), matching the MIDI Manufacturers
Association standard and most DAWs.  Names are case-insensitive and take
the form ``<letter>[s|b]<octave>``, so ``"e1"`` is 28, ``"fs3"`` (F sharp 3)
is 54 and ``"bb2"`` (B flat 2) is 46.  Octave ``-1`` is written ``"c-1"``.

Piece modules keep their pitch tables as plain name strings and convert them
once with :func:`notes`; the engine never interprets pitch content.
"""

import math
import re
import typing


_PITCH_CLASSES: typing.Dict[str, int] = {
	"c": 0, "d": 2, "e": 4, "f": 5, "g": 7, "a": 9, "b": 11
}

_NOTE_NAME = re.compile(r"^([a-g])([sb#]?)(-?\d+)$")


def note (name: typing.Union[str, int]) -> int:

	"""Convert a note name (or a MIDI number, returned unchanged) to a MIDI note number.

	Raises:
		ValueError: If the name cannot be parsed or falls outside 0-127.
	"""

	if isinstance(name, int):
		return name

	match = _NOTE_NAME.match(name.strip().lower())

	if match is None:
		raise ValueError(f"Cannot parse note name {name!r}")

	letter, accidental, octave = match.groups()
	number = (int(octave) + 1) * 12 + _PITCH_CLASSES[letter]

	if accidental in ("s", "#"):
		number += 1
	elif accidental == "b":
		number -= 1

	if not 0 <= number <= 127:
		raise ValueError(f"Note {name!r} is outside the MIDI range")

	return number


def notes (names: typing.Iterable[typing.Union[str, int]]) -> typing.List[int]:

	"""Convert a sequence of note names to MIDI note numbers."""

	return [note(name) for name in names]


def hz_to_midi (hz: float) -> float:

	"""Convert a frequency to a fractional MIDI note number (A4 = 440 Hz = 69)."""

	if hz <= 0:
		raise ValueError("Frequency must be positive")

	return 69.0 + 12.0 * math.log2(hz / 440.0)
