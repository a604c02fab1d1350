import math

import numpy as np
import pytest

from sampler import (
    DEFAULT_SAMPLE,
    convert_to_days,
    describe_distribution,
    draw_sample,
    is_valid_distribution,
    parse_distribution,
    poisson_random,
    round_half_up,
)


class _Seq:
    """Deterministic random source replaying fixed uniforms."""

    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def test_constant_and_plain_numbers():
    rng = _Seq()
    assert draw_sample("Constant(2)", rng) == 2
    assert draw_sample(5, rng) == 5
    assert draw_sample("7", rng) == 7
    assert draw_sample(" 3.5 ", rng) == 3.5


def test_unknown_or_malformed_specs_fall_back_to_default():
    rng = _Seq()
    for spec in ("Weird(1)", "", None, "Uniform(1)", "Normal(-5, 1)", "Exponential(0)"):
        assert draw_sample(spec, rng) == DEFAULT_SAMPLE
        assert not is_valid_distribution(spec)


def test_names_are_case_insensitive_and_allow_spaces():
    assert parse_distribution("uniform(1, 3)").name == "uniform"
    assert parse_distribution("Uniform(100, 200)").params == (100.0, 200.0)
    assert parse_distribution("POISSON(4)").label == "Poisson"


def test_uniform_maps_unit_draw_onto_range():
    assert draw_sample("Uniform(100,200)", _Seq(0.5)) == 150
    rng = np.random.default_rng(3)
    draws = [draw_sample("Uniform(100,200)", rng) for _ in range(500)]
    assert all(100 <= d < 200 for d in draws)


def test_normal_with_zero_std_is_the_mean():
    rng = np.random.default_rng(0)
    assert all(draw_sample("Normal(10, 0)", rng) == 10 for _ in range(20))


def test_normal_sample_mean_close_to_parameter():
    rng = np.random.default_rng(11)
    draws = np.array([draw_sample("Normal(50, 5)", rng) for _ in range(4000)])
    assert abs(draws.mean() - 50) < 0.5


def test_exponential_inverse_cdf():
    assert draw_sample("Exponential(2)", _Seq(0.0)) == 0.0
    value = draw_sample("Exponential(2)", _Seq(0.5))
    assert value == pytest.approx(math.log(2) / 2)


def test_poisson_non_negative_integers():
    rng = np.random.default_rng(42)
    draws = [poisson_random(4, rng) for _ in range(1000)]
    assert all(isinstance(x, int) and x >= 0 for x in draws)
    assert 3.5 < np.mean(draws) < 4.5
    assert poisson_random(0, _Seq(0.5)) == 0


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(7.0) == 7


@pytest.mark.parametrize(
    "value,uom,expected",
    [(2, "DAY", 2), (48, "HR", 2), (2880, "MIN", 2), (3, None, 3), (4, "hr", 4 / 24)],
)
def test_convert_to_days(value, uom, expected):
    assert convert_to_days(value, uom) == pytest.approx(expected)


def test_constant_two_day_lead_time():
    rng = _Seq()
    assert convert_to_days(draw_sample("Constant(2)", rng), "DAY") == 2


def test_describe_distribution():
    assert describe_distribution("Normal(5, 1)") == ("Normal", "5, 1")
    assert describe_distribution(None) == ("Constant", "2")
