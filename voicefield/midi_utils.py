import logging
import typing

import mido

import voicefield.constants.midi
import voicefield.sequence_utils


logger = logging.getLogger(__name__)


def select_output_device (device_name: typing.Optional[str] = None, force: bool = False) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:
    """
    Select and open a MIDI output device without prompting.

    voicefield runs unattended for hours, so device resolution never blocks
    on the console:

    - If `force` is True, only `device_name` is acceptable; if it is missing
      no port is opened.
    - Otherwise `device_name` is used when present, else the first available
      output.
    - If no devices exist, logs an error and returns (None, None).  The engine
      keeps scheduling with MIDI emission as a no-op.

    Returns:
        A tuple of (device_name, midi_out_object) or (None, None) on failure.
    """
    try:
        outputs = mido.get_output_names()
        logger.info(f"Available MIDI outputs: {outputs}")

        if not outputs:
            logger.error("No MIDI output devices found.")
            return None, None

        if device_name is not None and device_name in outputs:
            midi_out = mido.open_output(device_name)
            logger.info(f"Opened MIDI output: {device_name}")
            return device_name, midi_out

        if force:
            logger.error(
                f"MIDI output device '{device_name}' not found and port is forced. "
                f"Available devices: {outputs}"
            )
            return None, None

        if device_name is not None:
            logger.warning(f"MIDI output device '{device_name}' not found.")

        selected_name = outputs[0]
        midi_out = mido.open_output(selected_name)
        logger.info(f"Using MIDI output '{selected_name}'")
        return selected_name, midi_out

    except Exception as e:
        logger.error(f"Failed to open MIDI output: {e}")
        return None, None


def clamp_data (value: float) -> int:

    """Clamp a pitch, velocity, controller number or CC value to 0-127."""

    return voicefield.sequence_utils.clamp_int(value, voicefield.constants.midi.VALUE_MIN, voicefield.constants.midi.VALUE_MAX)


def clamp_channel (channel: float) -> int:

    """Clamp a 1-indexed channel to 1-16."""

    return voicefield.sequence_utils.clamp_int(channel, voicefield.constants.midi.CHANNEL_MIN, voicefield.constants.midi.CHANNEL_MAX)


class MidiRecorder:

    """Captures every sent message with its clock time for export to a MIDI file."""

    def __init__ (self, clock: typing.Callable[[], float], filename: typing.Optional[str] = None) -> None:

        self._clock = clock
        self.filename = filename
        self.events: typing.List[typing.Tuple[float, mido.Message]] = []


    def record (self, message: mido.Message) -> None:

        """Store a copy of *message* stamped with the current clock time."""

        self.events.append((self._clock(), message.copy()))


    def save (self, bpm: float, filename: typing.Optional[str] = None) -> typing.Optional[str]:

        """Write the recording as a type 1 MIDI file at 480 ticks per beat.

        Returns the filename written, or None when nothing was recorded.
        """

        target = filename or self.filename

        if target is None or not self.events:
            return None

        logger.info(f"Saving MIDI recording ({len(self.events)} events) to {target}...")

        mid = mido.MidiFile(type=1)
        mid.ticks_per_beat = 480
        track = mido.MidiTrack()
        mid.tracks.append(track)

        tempo = mido.bpm2tempo(bpm)
        track.append(mido.MetaMessage('set_tempo', tempo=tempo, time=0))

        last_tick = 0

        for seconds, message in sorted(self.events, key=lambda e: e[0]):

            tick = int(round(mido.second2tick(seconds, mid.ticks_per_beat, tempo)))
            track.append(message.copy(time=max(0, tick - last_tick)))
            last_tick = max(last_tick, tick)

        try:
            mid.save(target)
            logger.info(f"Saved {target}")
        except Exception as e:
            logger.error(f"Failed to save MIDI recording: {e}")
            return None

        return target


class MidiOutput:

    """
    Clamped, toggle-gated MIDI output.

    All values are clamped rather than rejected.  Note-ons and controller
    messages are suppressed while the *enabled* (or *cc_enabled*) predicate
    is False or no port is open; note-offs and all-notes-off are owed to
    notes already sounding, so they are only suppressed when no port is open.
    """

    def __init__ (
        self,
        device_name: typing.Optional[str] = None,
        force_port: bool = False,
        enabled: typing.Optional[typing.Callable[[], bool]] = None,
        cc_enabled: typing.Optional[typing.Callable[[], bool]] = None,
        port: typing.Optional[typing.Any] = None,
        recorder: typing.Optional[MidiRecorder] = None
    ) -> None:

        """
        Parameters:
            device_name: Preferred output device name.
            force_port: Only ever open *device_name* (see :func:`select_output_device`).
            enabled: Predicate for the global "send MIDI" toggle.
            cc_enabled: Predicate for the "send CC" toggle.
            port: An already-open port; skips device resolution (used by tests).
            recorder: Optional session recorder.
        """

        self.device_name = device_name
        self.force_port = force_port
        self._enabled = enabled or (lambda: True)
        self._cc_enabled = cc_enabled or (lambda: True)
        self.recorder = recorder
        self.port: typing.Optional[typing.Any] = port
        self.channels_used: typing.Set[int] = set()

        if self.port is None:
            self.open()


    def open (self) -> None:

        """Resolve and open the output port (no-op if no device is available)."""

        name, port = select_output_device(self.device_name, force=self.force_port)

        if port is not None:
            self.device_name = name
            self.port = port


    def reopen (self, device_name: typing.Optional[str], force_port: bool) -> None:

        """Close the current port and resolve again with new port settings."""

        logger.info(f"MIDI port: re-resolving (device={device_name!r}, forced={force_port})")

        self.close()
        self.device_name = device_name
        self.force_port = force_port
        self.open()


    def close (self) -> None:

        """Close the port if one is open."""

        if self.port is not None:
            try:
                self.port.close()
            except Exception:
                logger.exception("Failed to close MIDI output")
            self.port = None


    def gate (self, enabled: typing.Callable[[], bool], cc_enabled: typing.Optional[typing.Callable[[], bool]] = None) -> None:

        """Replace the toggle predicates (the engine binds its bus toggles here)."""

        self._enabled = enabled
        self._cc_enabled = cc_enabled or (lambda: True)


    @property
    def enabled (self) -> bool:

        """True when new notes may be started."""

        return self.port is not None and bool(self._enabled())


    def _send (self, message: mido.Message) -> bool:

        if self.port is None:
            return False

        try:
            self.port.send(message)
        except Exception:
            logger.exception("MIDI send failed (device may be disconnected)")
            return False

        if self.recorder is not None:
            self.recorder.record(message)

        return True


    def note_on (self, pitch: float, velocity: float, channel: float) -> bool:

        """Send a note-on; returns True only if the message left the port."""

        if not self.enabled:
            return False

        channel = clamp_channel(channel)
        self.channels_used.add(channel)

        return self._send(mido.Message('note_on', channel=channel - 1, note=clamp_data(pitch), velocity=clamp_data(velocity)))


    def note_off (self, pitch: float, channel: float) -> bool:

        """Send a note-off regardless of the toggle (it is owed to a sounding note)."""

        return self._send(mido.Message('note_off', channel=clamp_channel(channel) - 1, note=clamp_data(pitch), velocity=0))


    def control_change (self, control: float, value: float, channel: float) -> bool:

        """Send a controller message if both the MIDI and CC toggles allow it."""

        if not self.enabled or not self._cc_enabled():
            return False

        channel = clamp_channel(channel)
        self.channels_used.add(channel)

        return self._send(mido.Message('control_change', channel=channel - 1, control=clamp_data(control), value=clamp_data(value)))


    def all_notes_off (self, channel: float) -> bool:

        """Send "All Notes Off" (CC 123, value 0) on one channel."""

        return self._send(mido.Message(
            'control_change',
            channel = clamp_channel(channel) - 1,
            control = voicefield.constants.midi.ALL_NOTES_OFF,
            value = 0
        ))
