import random

import pytest

import voicefield.trigger


def test_fade_factor_bounds () -> None:

	assert voicefield.trigger.fade_factor(0, 1500) == 1.0
	assert voicefield.trigger.fade_factor(750, 1500) == pytest.approx(0.5)
	assert voicefield.trigger.fade_factor(1500, 1500) == 0.0
	assert voicefield.trigger.fade_factor(9000, 1500) == 0.0

	with pytest.raises(ValueError):
		voicefield.trigger.fade_factor(0, 0)


def test_chime_rate_at_sleep_entry () -> None:

	"""Odds 1/0.14 round to 7, so the rate starts at one in seven."""

	odds = voicefield.trigger.odds_from_chance(0.14)

	assert voicefield.trigger.effective_odds(odds, 1.0) == 7
	assert voicefield.trigger.effective_rate(odds, 1.0) == pytest.approx(1 / 7)


def test_odds_stretch_four_times_at_the_end () -> None:

	"""Just above suppression the odds approach four times the base."""

	assert voicefield.trigger.effective_odds(7, 0.03) == 27
	assert voicefield.trigger.effective_odds(7, 0.5) == 18


def test_odds_never_below_two () -> None:

	assert voicefield.trigger.effective_odds(1, 1.0) == 2


def test_rate_suppressed_near_zero () -> None:

	assert voicefield.trigger.effective_rate(7, 0.02) == 0.0
	assert voicefield.trigger.effective_rate(7, 0.0) == 0.0
	assert voicefield.trigger.effective_rate(7, 0.021) > 0.0


def test_rate_is_monotonically_non_increasing () -> None:

	"""The piece quiets over the window and never spikes back up."""

	trigger = voicefield.trigger.FadingTrigger(base_odds=voicefield.trigger.odds_from_chance(0.14), window=1500, epoch=0.0)
	rates = [trigger.rate(t) for t in range(0, 1601, 5)]

	for earlier, later in zip(rates, rates[1:]):
		assert later <= earlier

	assert rates[0] == pytest.approx(1 / 7)
	assert trigger.rate(1500) == 0.0


def test_suppressed_trigger_never_fires () -> None:

	trigger = voicefield.trigger.FadingTrigger(base_odds=2, window=100, epoch=0.0)
	rng = random.Random(1)

	assert not any(trigger.fire(200.0, rng) for _ in range(500))


def test_trigger_fires_at_roughly_its_rate () -> None:

	trigger = voicefield.trigger.FadingTrigger(base_odds=4, window=100)
	rng = random.Random(2)

	hits = sum(trigger.fire(0.0, rng) for _ in range(4000))

	assert 800 < hits < 1200


def test_start_sets_epoch_once () -> None:

	trigger = voicefield.trigger.FadingTrigger(base_odds=7, window=1500)

	assert trigger.elapsed(500.0) == 0.0

	trigger.start(960.0)
	trigger.start(2000.0)

	assert trigger.epoch == 960.0
	assert trigger.elapsed(1710.0) == pytest.approx(750.0)
	assert trigger.fade(1710.0) == pytest.approx(0.5)

	trigger.reset()
	assert trigger.epoch is None


def test_invalid_arguments () -> None:

	with pytest.raises(ValueError):
		voicefield.trigger.odds_from_chance(0)

	with pytest.raises(ValueError):
		voicefield.trigger.FadingTrigger(base_odds=0, window=10)

	with pytest.raises(ValueError):
		voicefield.trigger.FadingTrigger(base_odds=7, window=0)
