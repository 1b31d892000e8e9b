import pytest

import voicefield.state_bus


def test_get_missing_key_returns_default () -> None:

	"""Reading a key that was never written should never fail."""

	bus = voicefield.state_bus.StateBus()

	assert bus.get("density") is None
	assert bus.get("density", 0.5) == 0.5


def test_registered_default_is_not_an_entry () -> None:

	"""Defaults are returned by get() but has() stays False until a write."""

	bus = voicefield.state_bus.StateBus({"send_midi": True})

	assert bus.get("send_midi") is True
	assert bus.has("send_midi") is False

	bus.set("send_midi", False)

	assert bus.get("send_midi") is False
	assert bus.has("send_midi") is True


def test_register_defaults_adds_knobs () -> None:

	bus = voicefield.state_bus.StateBus()
	bus.register_defaults({"swing": 0.03})

	assert bus.get("swing") == 0.03
	assert bus.keys() == []


def test_last_write_wins () -> None:

	bus = voicefield.state_bus.StateBus()

	bus.set("density", 0.2)
	bus.set("density", 0.7)

	assert bus.get("density") == 0.7


def test_owned_key_rejects_other_writers () -> None:

	"""Only the registered owner may write a claimed key."""

	bus = voicefield.state_bus.StateBus()
	bus.claim("section", "conductor")

	bus.set("section", "groove", owner="conductor")

	with pytest.raises(voicefield.state_bus.OwnershipError):
		bus.set("section", "axis", owner="kick")

	with pytest.raises(voicefield.state_bus.OwnershipError):
		bus.set("section", "axis")

	assert bus.get("section") == "groove"


def test_claim_by_second_owner_fails () -> None:

	bus = voicefield.state_bus.StateBus()
	bus.claim("climate", "climate")

	bus.claim("climate", "climate")

	with pytest.raises(voicefield.state_bus.OwnershipError):
		bus.claim("climate", "drone_bed")


def test_release_frees_the_key () -> None:

	bus = voicefield.state_bus.StateBus()
	bus.claim("climate", "climate")

	bus.release("climate", "other")
	assert bus.owner("climate") == "climate"

	bus.release("climate", "climate")
	assert bus.owner("climate") is None

	bus.set("climate", 0.1, owner="anyone")
	assert bus.get("climate") == 0.1


def test_on_change_receives_new_and_old () -> None:

	"""Change listeners fire only when the value actually changes."""

	bus = voicefield.state_bus.StateBus({"send_cc": True})
	changes = []

	bus.on_change("send_cc", lambda new, old: changes.append((new, old)))

	bus.set("send_cc", True)
	bus.set("send_cc", False)
	bus.set("send_cc", False)

	assert changes == [(False, True)]


def test_update_is_read_modify_write () -> None:

	bus = voicefield.state_bus.StateBus()

	assert bus.update("bar_count", lambda n: n + 1, default=0) == 1
	assert bus.update("bar_count", lambda n: n + 1, default=0) == 2
	assert bus.get("bar_count") == 2


def test_update_respects_ownership () -> None:

	bus = voicefield.state_bus.StateBus()
	bus.claim("bar_count", "conductor")

	with pytest.raises(voicefield.state_bus.OwnershipError):
		bus.update("bar_count", lambda n: n + 1, default=0, owner="kick")


def test_snapshot_overlays_values_on_defaults () -> None:

	bus = voicefield.state_bus.StateBus({"send_midi": True, "send_cc": True})
	bus.set("send_cc", False)
	bus.set("section", "intro")

	snapshot = bus.snapshot()

	assert snapshot == {"send_midi": True, "send_cc": False, "section": "intro"}

	snapshot["section"] = "changed"
	assert bus.get("section") == "intro"


def test_toggles_exclude_port_name () -> None:

	"""The port name is a value, not an on/off toggle."""

	assert voicefield.state_bus.MIDI_PORT not in voicefield.state_bus.TOGGLES
	assert voicefield.state_bus.PANIC in voicefield.state_bus.TOGGLES
	assert voicefield.state_bus.STOP_ALL in voicefield.state_bus.TOGGLES
