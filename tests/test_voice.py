import pytest

import voicefield.state_bus


@pytest.fixture
def v (engine):

	"""A context for a voice named "halo", built the way the engine builds them."""

	engine.add_voice(lambda v: 1, name="halo")
	engine.render(0)
	return engine.contexts["halo"]


def test_tick_and_look (v) -> None:

	assert v.look("a") == 0
	assert [v.tick("a") for _ in range(3)] == [0, 1, 2]
	assert v.look("a") == 2

	v.reset_tick("a")

	assert v.tick("a") == 0


def test_counters_are_independent (v) -> None:

	v.tick("a")
	v.tick("a")

	assert v.tick("b") == 0


def test_ring_wraps (v) -> None:

	assert [v.ring([1, 2, 3], "r") for _ in range(5)] == [1, 2, 3, 1, 2]


def test_set_writes_as_the_voice (v) -> None:

	"""Writes carry the voice's name, so owned keys stay protected."""

	v.claim("mood")
	v.set("mood", "dark")

	assert v.get("mood") == "dark"

	with pytest.raises(voicefield.state_bus.OwnershipError):
		v.bus.set("mood", "light", owner="someone_else")


def test_get_falls_back_to_caller_default (v) -> None:

	assert v.get("never_written", 0.5) == 0.5
	assert v.climate == 0.0


def test_seconds_converts_at_tempo (engine, v) -> None:

	engine.set_bpm(120)

	assert v.seconds(3) == 6.0


def test_note_accepts_names (v, port) -> None:

	v.note("c4", velocity=80, channel=2, duration=0.5)

	message = port.of_type("note_on")[0]
	assert message.note == 60
	assert message.channel == 1


def test_wander_stays_near_base (v) -> None:

	values = [v.wander(64, depth=5, step=0.1, key="cut") for _ in range(200)]

	assert all(59 - 1e-9 <= value <= 69 + 1e-9 for value in values)


def test_cue_reaches_engine_listeners (engine, v) -> None:

	heard = []
	engine.on_event("drop", lambda *args: heard.append(args))

	v.cue("drop", 3)

	assert heard == [(3,)]


def test_later_runs_on_its_own_timeline (engine, v) -> None:

	"""A deferred call fires after its beats, converted at the current tempo."""

	engine.set_bpm(120)
	fired = []

	v.later(4, lambda: fired.append(engine.scheduler.now))
	engine.render(1.9)

	assert fired == []

	engine.render(0.2)

	assert fired == pytest.approx([2.0])
