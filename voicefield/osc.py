"""OSC control surface for runtime toggles and state broadcasting.

Enable it with ``engine.osc()`` (or an ``osc:`` block in the config file)
before ``engine.play()``.  The server listens on a UDP port (default 9000)
for control messages and sends state updates to a target host/port
(default 127.0.0.1:9001).

Built-in Receive Handlers
─────────────────────────
- ``/toggle/<name> <0|1>``: Flip a runtime toggle (``send_midi``,
  ``play_audio``, ``send_cc``, ``force_port``, ``debug_heartbeat``,
  ``stop_all``)
- ``/panic``: All notes off on every channel
- ``/stop``: Stop every voice (pending note-offs still drain)
- ``/port <name>``: Change the MIDI output port (re-resolved immediately)
- ``/bpm <float>``: Set tempo
- ``/jump <section>``: Force the form to a section
- ``/set/<key> <value>``: Write a shared value (refused for owned keys)

Built-in Send Events
────────────────────
- ``/section <string>``: On section change
- ``/bar <int>``: On each conductor bar (bar forms only)
"""

import asyncio
import logging
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import voicefield.state_bus

if typing.TYPE_CHECKING:
	from voicefield.engine import Engine


logger = logging.getLogger(__name__)


class OscServer:

	"""Async OSC server/client for bi-directional control."""

	def __init__ (
		self,
		engine: "Engine",
		receive_port: int = 9000,
		send_port: int = 9001,
		send_host: str = "127.0.0.1"
	) -> None:

		self._engine = engine
		self._receive_port = receive_port
		self._send_port = send_port
		self._send_host = send_host

		self._server: typing.Optional[typing.Any] = None
		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._dispatcher = pythonosc.dispatcher.Dispatcher()

		self._dispatcher.map("/toggle/*", self._handle_toggle)
		self._dispatcher.map("/panic", self._handle_panic)
		self._dispatcher.map("/stop", self._handle_stop)
		self._dispatcher.map("/port", self._handle_port)
		self._dispatcher.map("/bpm", self._handle_bpm)
		self._dispatcher.map("/jump", self._handle_jump)
		self._dispatcher.map("/set/*", self._handle_set)


	@property
	def port (self) -> typing.Optional[int]:

		"""The bound receive port (useful when constructed with port 0)."""

		if self._transport is None:
			return None

		return self._transport.get_extra_info("sockname")[1]


	async def start (self) -> None:

		"""Start the OSC server and client."""

		self._client = pythonosc.udp_client.SimpleUDPClient(self._send_host, self._send_port)

		self._server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			("0.0.0.0", self._receive_port),
			self._dispatcher,
			asyncio.get_running_loop()  # type: ignore[arg-type]
		)

		transport, _ = await self._server.create_serve_endpoint()
		self._transport = transport

		logger.info(f"OSC listening on :{self.port}, sending to {self._send_host}:{self._send_port}")


	async def stop (self) -> None:

		"""Stop the OSC server."""

		if self._transport:
			self._transport.close()
			self._transport = None
			logger.info("OSC server stopped")


	def send (self, address: str, *args: typing.Any) -> None:

		"""Send an OSC message."""

		if self._client:
			try:
				self._client.send_message(address, args)
			except Exception as e:
				logger.warning(f"OSC send error: {e}")


	def map (self, address: str, handler: typing.Callable) -> None:

		"""Register a custom OSC handler."""

		self._dispatcher.map(address, handler)


	# Handlers

	def _handle_toggle (self, address: str, *args: typing.Any) -> None:
		# address is like /toggle/send_midi
		parts = address.split("/")
		if len(parts) < 3:
			return
		name = parts[2]
		if name not in voicefield.state_bus.TOGGLES:
			logger.warning(f"Unknown OSC toggle: {name}")
			return
		value = bool(args[0]) if args else True
		self._engine.bus.set(name, value)

	def _handle_panic (self, address: str, *args: typing.Any) -> None:
		self._engine.bus.set(voicefield.state_bus.PANIC, True)

	def _handle_stop (self, address: str, *args: typing.Any) -> None:
		self._engine.stop()

	def _handle_port (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		self._engine.bus.set(voicefield.state_bus.MIDI_PORT, str(args[0]))

	def _handle_bpm (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		try:
			self._engine.set_bpm(float(args[0]))
		except (ValueError, TypeError):
			logger.warning(f"Invalid OSC BPM argument: {args[0]}")

	def _handle_jump (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		try:
			self._engine.form_jump(str(args[0]))
		except ValueError as e:
			logger.warning(f"OSC jump refused: {e}")

	def _handle_set (self, address: str, *args: typing.Any) -> None:
		# address is like /set/density
		if not args:
			return
		parts = address.split("/")
		if len(parts) < 3:
			return
		key = parts[2]
		try:
			self._engine.bus.set(key, args[0])
		except voicefield.state_bus.OwnershipError as e:
			logger.warning(f"OSC write refused: {e}")
