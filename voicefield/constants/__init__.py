"""Constants for voicefield.

This package contains:

- ``voicefield.constants.midi`` - MIDI protocol ranges and controller numbers
- ``voicefield.constants.velocity`` - MIDI velocity constants
- ``voicefield.constants.gm_drums`` - General MIDI percussion notes used by the pieces
- ``voicefield.constants.pitches`` - Note-name parsing (C4 = 60, Middle C)

The most common values are re-exported here, so
``voicefield.constants.ALL_NOTES_OFF`` works as well.
"""

from voicefield.constants.midi import (
	ALL_NOTES_OFF,
	ALL_SOUND_OFF,
	CHANNEL_MAX,
	CHANNEL_MIN,
	CUTOFF,
	MOD_WHEEL,
	VALUE_MAX,
	VALUE_MIN,
)
