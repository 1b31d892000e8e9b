"""MIDI protocol constants.

Channels are **1-indexed** throughout voicefield (1-16), matching the way
hardware, DAWs and the configuration file number them.  The output layer
converts to mido's 0-15 at the moment of sending.
"""

# Data byte range shared by pitch, velocity, controller number and CC value.
VALUE_MIN = 0
VALUE_MAX = 127

# Channel range (1-indexed).
CHANNEL_MIN = 1
CHANNEL_MAX = 16

# Controller numbers
MOD_WHEEL = 1
CUTOFF = 74                 # "Brightness" (GM2); mapped to filter cutoff by most synths
ALL_SOUND_OFF = 120
ALL_NOTES_OFF = 123

# Standard drum channel (1-indexed)
DRUM_CHANNEL = 10
