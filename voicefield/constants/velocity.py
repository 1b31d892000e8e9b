"""MIDI velocity constants.

Velocity is the MIDI attack strength (0-127). These constants define sensible
defaults for different layers of a long-form piece.
"""

# Primary defaults
DEFAULT_VELOCITY = 90           # Fire-and-forget notes
DEFAULT_HELD_VELOCITY = 60      # Held drones and pads (softer)

# Debug heartbeat
HEARTBEAT_VELOCITY = 50

# MIDI standard range
MIN_VELOCITY = 0
MAX_VELOCITY = 127
