"""Macro form: an ordered list of named sections with transitions.

Defines :class:`SectionInfo` (an immutable snapshot of where the form is)
and :class:`FormState` (the stateful machine that advances through sections).

Two transition policies are supported:

- **Counter-based** (``unit="bars"``): the owner calls ``advance()`` once per
  bar; a section of length 32 lasts exactly 32 calls.
- **Time-based** (``unit="seconds"`` or ``"beats"``): the owner reports
  elapsed time with ``advance_time()``; one long report may cross several
  sections.

A form either loops (back to ``loop_to`` after the last section) or ends in a
terminal section that lasts for ever.  Any section with length ``None`` is
terminal, and so is the last section of a non-looping form.

The engine's ``conductor`` voice is the only owner of a form; every other
voice reads the section name from the state bus.
"""

import dataclasses
import logging
import typing

import voicefield.event_emitter


logger = logging.getLogger(__name__)


UNITS = ("bars", "beats", "seconds")

# Time-based forms are advanced by float sleeps; positions this close to a
# boundary count as having reached it.
EPSILON = 1e-9

SectionList = typing.Sequence[typing.Tuple[str, typing.Optional[float]]]


@dataclasses.dataclass(frozen=True)
class SectionInfo:

	"""
	An immutable snapshot of the current section.

	Attributes:
		name: Section name (e.g. ``"groove"``).
		index: Position of the section in the form definition.
		position: Units elapsed within the section (bars, beats or seconds).
		length: Section length in the same units, or None when terminal.
		next_section: The section that follows, or None when terminal.
		entered: How many sections have been entered so far (1 for the first).

	Example:
		```python
		info = form.get_section_info()

		if info.name == "groove" and info.last_bar:
			...   # lead-in into the next section
		```
	"""

	name: str
	index: int
	position: float
	length: typing.Optional[float]
	next_section: typing.Optional[str] = None
	entered: int = 1

	@property
	def terminal (self) -> bool:
		return self.length is None

	@property
	def progress (self) -> float:

		"""Return how far through this section we are (0.0 to ~1.0; 0.0 when terminal)."""

		if not self.length:
			return 0.0

		return self.position / self.length

	@property
	def remaining (self) -> typing.Optional[float]:

		"""Units left before the next transition, or None when terminal."""

		if self.length is None:
			return None

		return max(0.0, self.length - self.position)

	@property
	def first_bar (self) -> bool:
		return self.position == 0

	@property
	def last_bar (self) -> bool:
		return self.length is not None and self.position >= self.length - 1


class FormState:

	"""Track the macro form as a sequence of named sections."""

	def __init__ (
		self,
		sections: SectionList,
		unit: str = "bars",
		loop: bool = False,
		loop_to: typing.Optional[str] = None
	) -> None:

		"""
		Parameters:
			sections: ``(name, length)`` pairs in order.  ``None`` as a length
				marks a terminal section.
			unit: ``"bars"`` for counter-based forms, ``"beats"`` or
				``"seconds"`` for time-based forms.
			loop: Cycle back to *loop_to* after the last section.
			loop_to: Where a looping form restarts (default: the first section).

		Raises:
			ValueError: On an empty form, duplicate names, an unknown unit or
				loop target, or a non-positive length.
		"""

		if not sections:
			raise ValueError("A form needs at least one section")

		if unit not in UNITS:
			raise ValueError(f"Unknown form unit {unit!r} (expected one of {', '.join(UNITS)})")

		names = [name for name, _ in sections]

		if len(set(names)) != len(names):
			raise ValueError(f"Section names must be unique: {names}")

		for name, length in sections:
			if length is not None and length <= 0:
				raise ValueError(f"Section {name!r} must have a positive length (or None for terminal)")

		if loop_to is not None and loop_to not in names:
			raise ValueError(f"Loop target {loop_to!r} is not a section of this form")

		self.sections: typing.List[typing.Tuple[str, typing.Optional[float]]] = list(sections)
		self.unit = unit
		self.loop = loop
		self.loop_to = loop_to if loop_to is not None else names[0]
		self.events = voicefield.event_emitter.EventEmitter()

		self._index = 0
		self._position: float = 0
		self._total: float = 0
		self._entered = 1


	@classmethod
	def from_thresholds (cls, thresholds: typing.Mapping[int, str], loop: bool = False) -> "FormState":

		"""Build a counter form from first-bar thresholds.

		``{1: "intro", 33: "groove", 97: "axis"}`` gives intro for bars 1-32,
		groove for bars 33-96 and axis from bar 97 on (terminal unless
		*loop* is set, in which case it lasts a single bar).
		"""

		if not thresholds:
			raise ValueError("At least one threshold is required")

		starts = sorted(thresholds)

		if starts[0] != 1:
			raise ValueError("The first threshold must be bar 1")

		sections: typing.List[typing.Tuple[str, typing.Optional[float]]] = []

		for i, start in enumerate(starts):
			length = starts[i + 1] - start if i + 1 < len(starts) else (1 if loop else None)
			sections.append((thresholds[start], length))

		return cls(sections, unit="bars", loop=loop)


	# ── Lookup ──

	def _length (self, index: int) -> typing.Optional[float]:

		length = self.sections[index][1]

		if not self.loop and index == len(self.sections) - 1:
			return None

		return length


	def _index_of (self, name: str) -> int:

		for i, (section_name, _) in enumerate(self.sections):
			if section_name == name:
				return i

		known = ", ".join(n for n, _ in self.sections)
		raise ValueError(f"Section {name!r} not found in form. Known sections: {known}")


	def _following (self, index: int) -> typing.Optional[int]:

		if self._length(index) is None:
			return None

		if index + 1 < len(self.sections):
			return index + 1

		return self._index_of(self.loop_to)


	@property
	def current (self) -> str:
		return self.sections[self._index][0]


	@property
	def total (self) -> float:

		"""Units elapsed since the form started."""

		return self._total


	@property
	def terminal (self) -> bool:
		return self._length(self._index) is None


	def next_section (self) -> typing.Optional[str]:

		following = self._following(self._index)
		return None if following is None else self.sections[following][0]


	def remaining (self) -> typing.Optional[float]:

		"""Units left in the current section, or None when terminal."""

		length = self._length(self._index)

		if length is None:
			return None

		return max(0.0, length - self._position)


	def get_section_info (self) -> SectionInfo:

		return SectionInfo(
			name = self.current,
			index = self._index,
			position = self._position,
			length = self._length(self._index),
			next_section = self.next_section(),
			entered = self._entered
		)


	# ── Listeners ──

	def on_enter (self, callback: typing.Callable[[str], typing.Any]) -> None:

		"""Call ``callback(name)`` each time a section is entered."""

		self.events.on("enter", callback)


	def on_exit (self, callback: typing.Callable[[str], typing.Any]) -> None:

		"""Call ``callback(name)`` each time a section is left."""

		self.events.on("exit", callback)


	def _transition (self, index: int) -> None:

		previous = self.current
		self.events.emit_sync("exit", previous)

		self._index = index
		self._position = 0
		self._entered += 1

		self.events.emit_sync("enter", self.current)


	# ── Advancing ──

	def advance (self, amount: float = 1) -> bool:

		"""Move forward *amount* units (one bar by default). Returns True if the section changed.

		Leftover time carries into the next section, so a time-based form never
		drifts however coarsely it is advanced.
		"""

		if amount < 0:
			raise ValueError("A form cannot move backwards")

		changed = False
		self._total += amount
		self._position += amount

		while True:

			length = self._length(self._index)

			if length is None or self._position < length - EPSILON:
				break

			leftover = max(0.0, self._position - length)
			following = self._following(self._index)
			assert following is not None

			self._transition(following)
			self._position = leftover
			changed = True

		return changed


	def advance_time (self, elapsed: float) -> bool:

		"""Advance a time-based form by *elapsed* seconds or beats."""

		if self.unit == "bars":
			raise ValueError("advance_time() needs a time-based form (unit 'beats' or 'seconds')")

		return self.advance(elapsed)


	def jump_to (self, section_name: str) -> None:

		"""Force the form to *section_name*, restarting it from position 0.

		Raises:
			ValueError: If the section is unknown.
		"""

		index = self._index_of(section_name)
		self._transition(index)
		logger.info(f"Form: jump → {section_name}")
