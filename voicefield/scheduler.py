import asyncio
import dataclasses
import heapq
import itertools
import logging
import time
import typing

import voicefield.event_emitter


logger = logging.getLogger(__name__)


# ─── Clocks ───────────────────────────────────────────────────────────────────


class Clock:

	"""
	Source of the current time in seconds.
	"""

	def now (self) -> float:
		raise NotImplementedError


class WallClock (Clock):

	"""
	Real time, measured with ``time.perf_counter()`` from construction (or ``reset()``).
	"""

	def __init__ (self) -> None:
		self._origin = time.perf_counter()

	def reset (self) -> None:
		self._origin = time.perf_counter()

	def now (self) -> float:
		return time.perf_counter() - self._origin


class VirtualClock (Clock):

	"""
	Simulated time that only moves when the scheduler advances it.

	Rendering on a virtual clock runs as fast as possible and is fully
	deterministic, which makes hour-long behaviour testable in milliseconds.
	"""

	def __init__ (self, start: float = 0.0) -> None:
		self._now = start

	def now (self) -> float:
		return self._now

	def advance_to (self, when: float) -> None:

		"""Move time forward to *when* (never backwards)."""

		if when < self._now:
			raise ValueError(f"Virtual clock cannot move backwards ({when} < {self._now})")

		self._now = when

	def advance (self, seconds: float) -> None:
		self.advance_to(self._now + seconds)


# ─── Tasks ────────────────────────────────────────────────────────────────────


class Task:

	"""
	Anything the scheduler can wake at a point in time.

	``wake()`` receives the time the task was scheduled for and returns the
	absolute time of its next wake, or None when it is finished.
	"""

	is_voice: bool = False
	priority: int = 0

	def __init__ (self, name: str) -> None:
		self.name = name
		self.cancelled = False
		self.entry: typing.Optional[int] = None

	def cancel (self) -> None:
		self.cancelled = True

	def wake (self, when: float) -> typing.Optional[float]:
		raise NotImplementedError


class TimedCall (Task):

	"""
	A one-shot callback, independent of whatever scheduled it.
	"""

	def __init__ (self, name: str, callback: typing.Callable[[], typing.Any]) -> None:
		super().__init__(name)
		self.callback = callback
		self.done = False

	def wake (self, when: float) -> typing.Optional[float]:

		try:
			self.callback()
		except Exception:
			logger.exception(f"Timed task {self.name!r} failed")
		finally:
			self.done = True

		return None


class StepContext (typing.Protocol):

	"""What the runtime needs from the object handed to a voice's step function."""

	now: float
	steps: int


PENDING = "pending"
WAITING = "waiting"
RUNNING = "running"
FAILED = "failed"
RETIRED = "retired"


@dataclasses.dataclass
class VoiceSpec:

	"""
	Identity and behaviour of one voice.

	Attributes:
		name: Unique voice name.
		fn: Step function ``fn(context) -> beats`` - reads state, emits, and
			returns how long to sleep before the next step.
		sync: Name of another voice; the first step waits for that voice's
			next wake, after which this voice free-runs.
		priority: Order among tasks due at the same instant; lower wakes first.
	"""

	name: str
	fn: typing.Callable[[typing.Any], float]
	sync: typing.Optional[str] = None
	priority: int = 0


class VoiceRunner (Task):

	"""
	Runs one voice's step function on each wake and reschedules it.
	"""

	is_voice = True

	def __init__ (self, spec: VoiceSpec, context: StepContext, scheduler: "Scheduler") -> None:
		super().__init__(spec.name)
		self.spec = spec
		self.priority = spec.priority
		self.context = context
		self.scheduler = scheduler
		self.status = PENDING
		self.error: typing.Optional[BaseException] = None


	def wake (self, when: float) -> typing.Optional[float]:

		if self.scheduler.stop_requested:
			self.scheduler._retire(self)
			return None

		self.status = RUNNING
		self.context.now = when

		try:
			beats = self.spec.fn(self.context)

			if isinstance(beats, bool) or not isinstance(beats, (int, float)):
				raise TypeError(f"Voice {self.name!r} returned {beats!r}; expected a sleep in beats")

			if beats < 0:
				raise ValueError(f"Voice {self.name!r} returned a negative sleep ({beats})")

		except Exception as exc:
			self.scheduler._fail(self, exc)
			return None

		finally:
			self.context.steps += 1

		self.scheduler._on_voice_wake(self, when)

		return when + self.scheduler.beats_to_seconds(beats)


# ─── Scheduler ────────────────────────────────────────────────────────────────


class Scheduler:

	"""
	The engine that drives voice timing.

	Voices, note-offs and ramp steps all live on one min-heap ordered by wake
	time.  Each voice is suspended only between its own steps; a voice's
	timeline never waits on another's.  The same heap runs against a wall
	clock (``run()``) or a virtual clock (``render()``).
	"""

	def __init__ (
		self,
		clock: typing.Optional[Clock] = None,
		bpm: float = 60,
		stop_flag: typing.Optional[typing.Callable[[], bool]] = None,
		poll_interval: float = 0.25
	) -> None:

		"""Initialize the scheduler.

		Parameters:
			clock: Time source; defaults to a :class:`WallClock`.
			bpm: Tempo used to convert voice sleeps (beats) into seconds.
			stop_flag: Extra predicate polled with the internal stop flag, so an
				external toggle (the ``stop_all`` bus key) can halt every voice.
			poll_interval: Longest real-time sleep between checks of the stop
				flag while running on a wall clock.
		"""

		self.clock: Clock = clock or WallClock()
		self.events = voicefield.event_emitter.EventEmitter()
		self.voices: typing.Dict[str, VoiceRunner] = {}
		self.poll_interval = poll_interval
		self.running = False

		self._queue: typing.List[typing.Tuple[float, int, int, Task]] = []
		self._counter = itertools.count()
		self._waiting_sync: typing.Dict[str, typing.List[VoiceRunner]] = {}
		self._stop_flag = stop_flag
		self._stopping = False
		self._current: typing.Optional[float] = None

		self.current_bpm: float = 0
		self.seconds_per_beat = 0.0
		self.set_bpm(bpm)


	# ── Tempo ──

	def set_bpm (self, bpm: float) -> None:

		"""
		Change the tempo used for converting beats to seconds.

		Sleeps already on the heap keep their wake time; the new tempo applies
		from each voice's next step.
		"""

		if bpm <= 0:
			raise ValueError("BPM must be positive")

		self.current_bpm = bpm
		self.seconds_per_beat = 60.0 / bpm

		logger.info(f"BPM set to {self.current_bpm:.2f}")


	def beats_to_seconds (self, beats: float) -> float:
		return beats * self.seconds_per_beat


	def seconds_to_beats (self, seconds: float) -> float:
		return seconds / self.seconds_per_beat


	# ── Time ──

	@property
	def now (self) -> float:

		"""
		Scheduler time in seconds.

		While a task is waking this is the time it was scheduled for, so
		anything it schedules is measured from its nominal wake (no drift).
		"""

		if self._current is not None:
			return self._current

		return self.clock.now()


	# ── Scheduling ──

	def schedule (self, task: Task, when: float) -> Task:

		"""Put *task* on the heap to wake at absolute time *when*.

		A task has one live wake; scheduling it again replaces the earlier one.
		"""

		task.entry = next(self._counter)
		heapq.heappush(self._queue, (when, task.priority, task.entry, task))
		return task


	@staticmethod
	def _stale (entry: int, task: Task) -> bool:
		return task.cancelled or entry != task.entry


	def call_later (self, seconds: float, callback: typing.Callable[[], typing.Any], name: str = "call") -> TimedCall:

		"""Run *callback* once, *seconds* from now, independent of the caller's schedule."""

		if seconds < 0:
			raise ValueError("Delay cannot be negative")

		task = TimedCall(name, callback)
		self.schedule(task, self.now + seconds)
		return task


	def add_voice (self, spec: VoiceSpec, context: StepContext, delay: float = 0.0) -> VoiceRunner:

		"""Register a voice and schedule its first step *delay* beats from now.

		Voices with ``sync`` set wait for their target's next wake instead.
		"""

		if spec.name in self.voices:
			raise ValueError(f"Voice {spec.name!r} is already registered")

		runner = VoiceRunner(spec, context, self)
		self.voices[spec.name] = runner

		if spec.sync is not None:

			target = self.voices.get(spec.sync)

			if target is not None and target.status in (FAILED, RETIRED):
				logger.warning(f"Voice {spec.name!r}: sync target {spec.sync!r} is {target.status}; starting free")
				runner.status = RUNNING
				self.schedule(runner, self.now + self.beats_to_seconds(delay))
			else:
				runner.status = WAITING
				self._waiting_sync.setdefault(spec.sync, []).append(runner)

		else:
			runner.status = RUNNING
			self.schedule(runner, self.now + self.beats_to_seconds(delay))

		logger.debug(f"Voice added: {spec.name}" + (f" (sync {spec.sync})" if spec.sync else ""))
		return runner


	def _on_voice_wake (self, runner: VoiceRunner, when: float) -> None:

		"""Release voices synced to *runner* so they start at this same instant."""

		waiting = self._waiting_sync.pop(runner.name, None)

		if waiting:
			for follower in waiting:
				if follower.status == WAITING:
					follower.status = RUNNING
					self.schedule(follower, when)

		self.events.emit_sync("voice_wake", runner.name, when)


	def _release_followers (self, name: str) -> None:

		for follower in self._waiting_sync.pop(name, []):
			if follower.status == WAITING:
				logger.warning(f"Voice {follower.name!r}: sync target {name!r} stopped; starting free")
				follower.status = RUNNING
				self.schedule(follower, self.now)


	def _fail (self, runner: VoiceRunner, exc: BaseException) -> None:

		"""Isolate a faulting voice: report it and stop scheduling only that voice."""

		runner.status = FAILED
		runner.error = exc
		logger.exception(f"Voice {runner.name!r} failed and has been stopped: {exc}")
		self.events.emit_sync("voice_failed", runner.name, exc)

		if not self.stop_requested:
			self._release_followers(runner.name)


	def _retire (self, runner: VoiceRunner) -> None:

		if runner.status in (FAILED, RETIRED):
			return

		runner.status = RETIRED
		runner.cancel()
		logger.debug(f"Voice retired: {runner.name}")
		self.events.emit_sync("voice_retired", runner.name)


	# ── Stop ──

	def stop (self) -> None:

		"""Raise the global stop flag; no voice will take another step."""

		if not self._stopping:
			logger.info("Stop requested")

		self._stopping = True


	@property
	def stop_requested (self) -> bool:

		if self._stopping:
			return True

		return bool(self._stop_flag is not None and self._stop_flag())


	def _retire_all (self) -> None:

		"""Retire every voice; they are all suspended between steps, so none is mid-emission."""

		for runner in self.voices.values():
			self._retire(runner)

		self._waiting_sync.clear()


	def pending_tasks (self) -> int:

		"""Return the number of live non-voice tasks (note-offs, ramps) on the heap."""

		return sum(1 for _, _, entry, task in self._queue if not self._stale(entry, task) and not task.is_voice)


	def next_wake (self) -> typing.Optional[float]:

		"""Return the earliest live wake time, discarding cancelled entries at the head."""

		while self._queue and self._stale(self._queue[0][2], self._queue[0][3]):
			heapq.heappop(self._queue)

		return self._queue[0][0] if self._queue else None


	# ── Processing ──

	def process_due (self, now: float) -> int:

		"""Wake every task due at or before *now*, in time order. Returns the number woken."""

		woken = 0

		while self._queue and self._queue[0][0] <= now:

			when, _, entry, task = heapq.heappop(self._queue)

			if self._stale(entry, task):
				continue

			self._current = when

			try:
				next_when = task.wake(when)
			finally:
				self._current = None

			woken += 1

			if next_when is not None and not self._stale(entry, task):
				self.schedule(task, next_when)

		return woken


	def _virtual_clock (self) -> VirtualClock:

		if not isinstance(self.clock, VirtualClock):
			raise ValueError("Rendering requires a VirtualClock")

		return self.clock


	def render (self, seconds: float) -> None:

		"""Advance a virtual clock by *seconds*, waking everything due on the way."""

		clock = self._virtual_clock()
		end = clock.now() + seconds

		while True:

			when = self.next_wake()

			if when is None or when > end:
				break

			clock.advance_to(max(when, clock.now()))
			self.process_due(clock.now())

			if self.stop_requested:
				self._retire_all()

		clock.advance_to(end)


	def drain (self) -> None:

		"""Retire all voices and run every remaining timed task to completion (virtual clock)."""

		clock = self._virtual_clock()
		self.stop()
		self._retire_all()

		while True:
			when = self.next_wake()

			if when is None:
				break

			clock.advance_to(max(when, clock.now()))
			self.process_due(clock.now())


	async def run (self) -> None:

		"""
		Run until stopped and drained.

		On a wall clock the loop sleeps until the next wake (at most
		``poll_interval``).  On a virtual clock it jumps straight to the next
		wake and yields to the event loop between wakes.
		"""

		virtual = isinstance(self.clock, VirtualClock)
		self.running = True

		try:
			while True:

				self.process_due(self.clock.now())

				if self.stop_requested:
					self._retire_all()

					if not self.pending_tasks():
						break

				when = self.next_wake()

				if when is None:
					logger.info("Nothing left to schedule.")
					break

				if virtual:
					self.clock.advance_to(max(when, self.clock.now()))  # type: ignore[attr-defined]
					await asyncio.sleep(0)
				else:
					delay = when - self.clock.now()
					await asyncio.sleep(min(max(delay, 0.0), self.poll_interval))

		finally:
			self.running = False
