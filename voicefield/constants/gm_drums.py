"""General MIDI Level 1 drum notes used by the voice set.

Standard percussion assignments for MIDI channel 10. Only the notes the
pieces actually play are named here; any GM-compatible drum rack maps them
to the expected sounds.

	import voicefield.constants.gm_drums as drums

	v.note(drums.KICK_1, 100, channel=10, duration=0.06)
"""

import typing


KICK_1 = 36
SIDE_STICK = 37
SNARE_1 = 38
HI_HAT_CLOSED = 42
HI_HAT_OPEN = 46
RIDE_BELL = 53


GM_DRUM_MAP: typing.Dict[str, int] = {
	"kick":      KICK_1,
	"rim":       SIDE_STICK,
	"snare":     SNARE_1,
	"hat":       HI_HAT_CLOSED,
	"hat_open":  HI_HAT_OPEN,
	"bell":      RIDE_BELL,
}
