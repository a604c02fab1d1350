"""Distribution sampler for demand, order intervals and transport times.

Specs look like ``"Uniform(100, 200)"``, ``"Normal(150,25)"`` or
``"Constant(7)"``. Plain numbers (or numeric strings) are constants. Anything
that cannot be understood falls back to :data:`DEFAULT_SAMPLE`.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Protocol, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE = 100.0

_SPEC_RE = re.compile(r"(\w+)\(([\d\s,\.]+)\)")
_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

# name -> number of parameters required
_ARITY = {
    "uniform": 2,
    "normal": 2,
    "exponential": 1,
    "poisson": 1,
    "constant": 1,
}

_DAY_DIVISORS = {
    "MIN": 60.0 * 24.0,
    "HR": 24.0,
    "DAY": 1.0,
}


class RandomSource(Protocol):
    def random(self) -> float:
        ...


SpecLike = Union[str, int, float, None]


@dataclass(frozen=True)
class Distribution:
    name: str
    params: Tuple[float, ...]

    @property
    def label(self) -> str:
        return self.name.capitalize()


def _parse_float(token: str) -> float:
    match = _LEADING_NUMBER_RE.match(token)
    if not match:
        return float("nan")
    return float(match.group(1))


def _as_number(spec: SpecLike) -> Optional[float]:
    if isinstance(spec, bool):
        return None
    if isinstance(spec, (int, float)):
        return float(spec)
    if isinstance(spec, str) and spec.strip():
        try:
            value = float(spec.strip())
        except ValueError:
            return None
        if math.isnan(value):
            return None
        return value
    return None


@lru_cache(maxsize=1024)
def _parse_text(text: str) -> Optional[Distribution]:
    match = _SPEC_RE.search(text)
    if not match:
        return None
    name = match.group(1).lower()
    arity = _ARITY.get(name)
    if arity is None:
        return None
    params = tuple(_parse_float(p.strip()) for p in match.group(2).split(","))
    if len(params) < arity or any(math.isnan(p) for p in params[:arity]):
        return None
    if name == "exponential" and params[0] <= 0:
        return None
    return Distribution(name=name, params=params[:arity])


def parse_distribution(spec: SpecLike) -> Optional[Distribution]:
    """Parse ``spec`` into a :class:`Distribution`.

    Numbers become ``Constant`` distributions. Returns ``None`` when the spec
    is not understood; callers then use :data:`DEFAULT_SAMPLE`.
    """

    number = _as_number(spec)
    if number is not None:
        return Distribution(name="constant", params=(number,))
    if not isinstance(spec, str):
        return None
    return _parse_text(spec)


def is_valid_distribution(spec: SpecLike) -> bool:
    return parse_distribution(spec) is not None


def normal_random(mean: float, std: float, rng: RandomSource) -> float:
    # Box-Muller; 1 - u keeps the log argument in (0, 1]
    u1 = 1.0 - rng.random()
    u2 = rng.random()
    z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return z0 * std + mean


def poisson_random(lam: float, rng: RandomSource) -> int:
    """Knuth's multiplication method."""
    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= rng.random()
        if p <= limit:
            break
    return k - 1


def sample_distribution(dist: Optional[Distribution], rng: RandomSource) -> float:
    if dist is None:
        return DEFAULT_SAMPLE
    name, params = dist.name, dist.params
    if name == "uniform":
        low, high = params
        return rng.random() * (high - low) + low
    if name == "normal":
        mean, std = params
        return normal_random(mean, std, rng)
    if name == "exponential":
        (lam,) = params
        return -math.log(1.0 - rng.random()) / lam
    if name == "poisson":
        return float(poisson_random(params[0], rng))
    if name == "constant":
        return params[0]
    return DEFAULT_SAMPLE


def draw_sample(spec: SpecLike, rng: RandomSource) -> float:
    """Draw one value for ``spec`` using ``rng``."""
    dist = parse_distribution(spec)
    if dist is None:
        logger.debug("Unparsable distribution %r, using %s", spec, DEFAULT_SAMPLE)
    return sample_distribution(dist, rng)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves toward +inf (``2.5 -> 3``, ``-2.5 -> -2``)."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def convert_to_days(value: float, uom: Optional[str]) -> float:
    divisor = _DAY_DIVISORS.get(str(uom or "DAY").strip().upper(), 1.0)
    return value / divisor


def describe_distribution(spec: SpecLike) -> Tuple[str, str]:
    """Split a spec into display name and raw parameter text.

    ``"Normal(5, 1)"`` -> ``("Normal", "5, 1")``; specs without parentheses
    fall back to ``("Constant", "2")`` pieces where missing.
    """

    text = str(spec) if spec is not None else ""
    name = text.split("(")[0] or "Constant"
    match = re.search(r"\((.*)\)", text)
    params = match.group(1) if match else "2"
    return name, params


__all__ = [
    "DEFAULT_SAMPLE",
    "Distribution",
    "RandomSource",
    "convert_to_days",
    "describe_distribution",
    "draw_sample",
    "is_valid_distribution",
    "normal_random",
    "parse_distribution",
    "poisson_random",
    "round_half_up",
    "sample_distribution",
]
