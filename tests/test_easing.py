
import pytest
import voicefield.easing
import voicefield.ramp


# ─── Core properties of all easing functions ─────────────────────────────────


def test_all_easings_fixed_endpoints ():

	"""Every easing function maps 0 to 0 and 1 to 1."""

	for name, fn in voicefield.easing.EASING_FUNCTIONS.items():
		assert fn(0.0) == pytest.approx(0.0), f"{name}(0) should be 0.0"
		assert fn(1.0) == pytest.approx(1.0), f"{name}(1) should be 1.0"


def test_all_easings_monotonic ():

	"""Every easing function is non-decreasing over [0, 1]."""

	steps = 100
	for name, fn in voicefield.easing.EASING_FUNCTIONS.items():
		values = [fn(i / steps) for i in range(steps + 1)]
		for i in range(len(values) - 1):
			assert values[i] <= values[i + 1] + 1e-9, (
				f"{name} is not monotonic at t={i/steps:.2f}"
			)


# ─── Shape-specific characteristics ──────────────────────────────────────────


def test_ease_in_and_out_sit_either_side_of_linear ():

	assert voicefield.easing.ease_in(0.5) < 0.5
	assert voicefield.easing.ease_out(0.5) > 0.5


def test_symmetric_shapes_pass_through_midpoint ():

	for fn in (voicefield.easing.ease_in_out, voicefield.easing.s_curve, voicefield.easing.breath):
		assert fn(0.5) == pytest.approx(0.5)


def test_exponential_slower_than_ease_in ():

	"""exponential (cubic) should be slower early than ease_in (quadratic)."""

	assert voicefield.easing.exponential(0.5) < voicefield.easing.ease_in(0.5)


def test_logarithmic_faster_than_ease_out ():

	assert voicefield.easing.logarithmic(0.5) > voicefield.easing.ease_out(0.5)


# ─── get_easing ───────────────────────────────────────────────────────────────


def test_get_easing_all_names ():

	"""get_easing works for every registered name."""

	for name, expected in voicefield.easing.EASING_FUNCTIONS.items():
		assert voicefield.easing.get_easing(name) is expected


def test_get_easing_callable_passthrough ():

	custom = lambda t: t ** 0.5
	assert voicefield.easing.get_easing(custom) is custom


def test_get_easing_unknown_raises ():

	"""get_easing raises ValueError for an unknown string name."""

	with pytest.raises(ValueError, match="Unknown easing shape"):
		voicefield.easing.get_easing("bogus_shape")


# ─── Ramp curves ─────────────────────────────────────────────────────────────


def test_linear_curve_matches_dissolve_ramp ():

	"""A nine-step linear fall from 64 to 0 lands on multiples of eight."""

	assert voicefield.ramp.curve(64, 0, steps=9) == [64, 56, 48, 40, 32, 24, 16, 8, 0]


def test_eased_curve_keeps_endpoints ():

	values = voicefield.ramp.curve(0, 127, steps=5, shape="ease_in")

	assert values[0] == 0
	assert values[-1] == 127
	assert values[2] < 64


def test_single_step_curve_is_the_target ():

	assert voicefield.ramp.curve(10, 90, steps=1) == [90]

	with pytest.raises(ValueError):
		voicefield.ramp.curve(10, 90, steps=0)
