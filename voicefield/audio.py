"""Optional external audio engine.

voicefield never makes sound itself.  When audio is wanted, voices send
opaque "play events" (an instrument name and a parameter bag) to an
external synthesis engine such as SuperCollider or a Sonic Pi listener over
OSC:

	/voicefield/play  "sine"  "note" 43.0  "amp" 0.04  "pan" -1 ...

Every sink applies the ``master_amplitude`` and ``room_mix`` settings to the
bag and is gated by the ``play_audio`` toggle, so voices can call
``v.play()`` unconditionally.
"""

import logging
import typing

import pythonosc.udp_client


logger = logging.getLogger(__name__)


PLAY_ADDRESS = "/voicefield/play"


class AudioSink:

	"""Base sink: gating and parameter shaping, no transport."""

	def __init__ (
		self,
		enabled: typing.Optional[typing.Callable[[], bool]] = None,
		master_amplitude: float = 1.0,
		room_mix: typing.Optional[float] = None
	) -> None:

		self._enabled = enabled or (lambda: True)
		self.master_amplitude = master_amplitude
		self.room_mix = room_mix
		self.sent = 0


	@property
	def enabled (self) -> bool:
		return bool(self._enabled())


	def gate (self, enabled: typing.Callable[[], bool]) -> None:
		self._enabled = enabled


	def shape (self, params: typing.Dict[str, typing.Any]) -> typing.Dict[str, typing.Any]:

		"""Scale ``amp`` by the master amplitude and add the room mix if none was given."""

		shaped = dict(params)
		shaped["amp"] = float(shaped.get("amp", 1.0)) * self.master_amplitude

		if self.room_mix is not None:
			shaped.setdefault("room", self.room_mix)

		return shaped


	def play (self, instrument: str, **params: typing.Any) -> bool:

		"""Send a play event; returns True if it was sent."""

		if not self.enabled:
			return False

		shaped = self.shape(params)

		if not self._send(instrument, shaped):
			return False

		self.sent += 1
		return True


	def _send (self, instrument: str, params: typing.Dict[str, typing.Any]) -> bool:
		raise NotImplementedError


	def close (self) -> None:
		pass


class NullAudioSink (AudioSink):

	"""Accepts play events and discards them."""

	def _send (self, instrument: str, params: typing.Dict[str, typing.Any]) -> bool:
		logger.debug(f"audio: {instrument} {params}")
		return True


class OscAudioSink (AudioSink):

	"""Forwards play events to an OSC-speaking audio engine."""

	def __init__ (
		self,
		host: str = "127.0.0.1",
		port: int = 57120,
		enabled: typing.Optional[typing.Callable[[], bool]] = None,
		master_amplitude: float = 1.0,
		room_mix: typing.Optional[float] = None,
		address: str = PLAY_ADDRESS
	) -> None:

		super().__init__(enabled=enabled, master_amplitude=master_amplitude, room_mix=room_mix)
		self.host = host
		self.port = port
		self.address = address
		self._client = pythonosc.udp_client.SimpleUDPClient(host, port)

		logger.info(f"Audio events → {host}:{port}{address}")


	def _send (self, instrument: str, params: typing.Dict[str, typing.Any]) -> bool:

		args: typing.List[typing.Any] = [instrument]

		for key, value in params.items():
			args.extend([key, value])

		try:
			self._client.send_message(self.address, args)
		except Exception as e:
			logger.warning(f"Audio send error: {e}")
			return False

		return True
