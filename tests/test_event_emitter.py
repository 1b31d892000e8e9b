import asyncio

import pytest

import voicefield.event_emitter


def test_on_and_emit_sync () -> None:

	"""Registered sync callbacks are called on emit_sync."""

	emitter = voicefield.event_emitter.EventEmitter()
	received: list[int] = []

	emitter.on("bar", lambda v: received.append(v))
	emitter.emit_sync("bar", 42)

	assert received == [42]


def test_off_removes_callback () -> None:

	"""off() prevents a previously registered callback from being called."""

	emitter = voicefield.event_emitter.EventEmitter()
	received: list[int] = []

	def cb (v: int) -> None:
		received.append(v)

	emitter.on("bar", cb)
	emitter.off("bar", cb)
	emitter.emit_sync("bar", 1)

	assert received == []


def test_off_unknown_callback_raises () -> None:

	emitter = voicefield.event_emitter.EventEmitter()

	with pytest.raises(ValueError):
		emitter.off("bar", lambda v: None)


def test_async_listener_without_loop_raises () -> None:

	emitter = voicefield.event_emitter.EventEmitter()

	async def listener () -> None:
		pass

	emitter.on("bar", listener)

	with pytest.raises(ValueError):
		emitter.emit_sync("bar")


@pytest.mark.asyncio
async def test_emit_async_awaits_async_listeners () -> None:

	"""emit_async runs sync listeners inline and awaits async ones."""

	emitter = voicefield.event_emitter.EventEmitter()
	received: list[str] = []

	async def slow (name: str) -> None:
		await asyncio.sleep(0)
		received.append(f"async {name}")

	emitter.on("section", lambda name: received.append(f"sync {name}"))
	emitter.on("section", slow)

	await emitter.emit_async("section", "ritual")

	assert received == ["sync ritual", "async ritual"]
