"""Shared control state read and written by every voice.

The bus is a plain key/value mapping with three guarantees:

- **Defaults on read.** A missing key never fails; ``get()`` returns the
  caller's default, else the default registered when the bus was built.
- **Single writer per key.** A key can be *claimed* by an owner (the
  conductor owns ``section``, the climate voice owns ``climate``).  Writes by
  anyone else raise :class:`OwnershipError`.
- **No torn values.** Each write and each ``update()`` read-modify-write runs
  under a lock, so a thread flipping a toggle (a MIDI callback, an OSC
  handler on another loop) can never interleave with a voice's write.

Voices run cooperatively on one event loop and never yield mid-step, so in
practice the lock is uncontended.

Example:
	```python
	bus = voicefield.state_bus.StateBus({"climate": 0.0})
	bus.claim("climate", owner="climate")

	bus.set("climate", 0.12, owner="climate")
	bus.get("climate")            # 0.12
	bus.get("missing", 5)         # 5
	```
"""

import logging
import threading
import typing

import voicefield.event_emitter


logger = logging.getLogger(__name__)


# ─── Well-known keys ──────────────────────────────────────────────────────────

SECTION = "section"
SECTION_STARTED_AT = "section_started_at"
BAR_COUNT = "bar_count"
CLIMATE = "climate"

# Runtime toggles (any caller may flip these).
SEND_MIDI = "send_midi"
PLAY_AUDIO = "play_audio"
SEND_CC = "send_cc"
FORCE_PORT = "force_port"
MIDI_PORT = "midi_port"
PANIC = "panic"
DEBUG_HEARTBEAT = "debug_heartbeat"
STOP_ALL = "stop_all"

TOGGLES: typing.Tuple[str, ...] = (SEND_MIDI, PLAY_AUDIO, SEND_CC, FORCE_PORT, PANIC, DEBUG_HEARTBEAT, STOP_ALL)


class OwnershipError (RuntimeError):

	"""Raised when a key is written by someone other than its registered owner."""


class StateBus:

	"""Key/value control state shared across voices, with owner-checked writes."""

	def __init__ (self, defaults: typing.Optional[typing.Dict[str, typing.Any]] = None) -> None:

		"""Create a bus.

		Parameters:
			defaults: Values returned by ``get()`` for keys that were never
				written.  Defaults are not entries: ``has()`` stays False
				until the first write.
		"""

		self._values: typing.Dict[str, typing.Any] = {}
		self._defaults: typing.Dict[str, typing.Any] = dict(defaults or {})
		self._owners: typing.Dict[str, str] = {}
		self._lock = threading.RLock()
		self.events = voicefield.event_emitter.EventEmitter()


	def register_defaults (self, defaults: typing.Mapping[str, typing.Any]) -> None:

		"""Add read defaults (e.g. a piece's initial knob values) without writing entries."""

		with self._lock:
			self._defaults.update(defaults)


	def claim (self, key: str, owner: str) -> None:


		"""Register *owner* as the only writer of *key*.

		Raises:
			OwnershipError: If the key is already owned by someone else.
		"""

		with self._lock:
			current = self._owners.get(key)

			if current is not None and current != owner:
				raise OwnershipError(f"Key {key!r} is already owned by {current!r}")

			self._owners[key] = owner

		logger.debug(f"State: {key!r} owned by {owner!r}")


	def release (self, key: str, owner: str) -> None:

		"""Give up ownership of *key* (no-op if *owner* does not hold it)."""

		with self._lock:
			if self._owners.get(key) == owner:
				del self._owners[key]


	def owner (self, key: str) -> typing.Optional[str]:

		"""Return the registered owner of *key*, or None if anyone may write it."""

		return self._owners.get(key)


	def get (self, key: str, default: typing.Any = None) -> typing.Any:

		"""Return the committed value of *key*, or a default if it was never written."""

		with self._lock:
			if key in self._values:
				return self._values[key]

		if default is not None:
			return default

		return self._defaults.get(key)


	def has (self, key: str) -> bool:

		"""Return True if *key* has been written at least once."""

		return key in self._values


	def _check_owner (self, key: str, owner: typing.Optional[str]) -> None:

		current = self._owners.get(key)

		if current is not None and current != owner:
			raise OwnershipError(f"Key {key!r} is owned by {current!r}, not {owner!r}")


	def set (self, key: str, value: typing.Any, owner: typing.Optional[str] = None) -> None:

		"""Commit a value (last write wins) and notify ``change`` listeners.

		Raises:
			OwnershipError: If *key* is claimed and *owner* does not match.
		"""

		with self._lock:
			self._check_owner(key, owner)
			previous = self._values.get(key, self._defaults.get(key))
			self._values[key] = value

		if previous != value:
			self.events.emit_sync(f"change:{key}", value, previous)
			self.events.emit_sync("change", key, value, previous)


	def update (self, key: str, fn: typing.Callable[[typing.Any], typing.Any], default: typing.Any = None, owner: typing.Optional[str] = None) -> typing.Any:

		"""Atomically replace the value of *key* with ``fn(current)`` and return it."""

		with self._lock:
			self._check_owner(key, owner)
			current = self.get(key, default)
			value = fn(current)
			self.set(key, value, owner=owner)

		return value


	def on_change (self, key: str, callback: typing.Callable[[typing.Any, typing.Any], typing.Any]) -> None:

		"""Call ``callback(new, old)`` whenever *key* changes value."""

		self.events.on(f"change:{key}", callback)


	def keys (self) -> typing.List[str]:

		"""Return the keys written so far."""

		with self._lock:
			return list(self._values)


	def snapshot (self) -> typing.Dict[str, typing.Any]:

		"""Return a copy of the defaults overlaid with every committed value."""

		with self._lock:
			merged = dict(self._defaults)
			merged.update(self._values)
			return merged
