"""Numerical building blocks of the threading hidden Markov model.

Times are in coalescent units, where the prior of a coalescence time is a
unit exponential. Grids and sampled times are spaced by exponential mass.
"""

from __future__ import annotations

import math
import random
from collections.abc import Callable, Iterable, Sequence

_QUANTILE_TOLERANCE = 1e-6
_NARROW_INTERVAL = 1e-6
_TINY_INTERVAL = 1e-4
_MAX_FACTOR = 5.0
DEFAULT_EPSILON = 1e-7


def exp_quantile(p: float) -> float:
    """Quantile of the unit exponential, snapped to 0 and infinity at the ends."""
    if not 0 <= p <= 1:
        raise ValueError(f"probability {p} outside [0, 1]")
    if p < _QUANTILE_TOLERANCE:
        return 0.0
    if 1 - p < _QUANTILE_TOLERANCE:
        return math.inf
    return -math.log(1 - p)


def generate_grid(lb: float, ub: float, gap: float) -> list[float]:
    """Breakpoints from ``lb`` to ``ub`` splitting the exponential mass evenly.

    Each piece holds at most ``gap`` of the mass; the ends are kept exactly.
    """
    if not lb < ub:
        raise ValueError(f"lower bound {lb} must lie below upper bound {ub}")
    if gap <= 0:
        raise ValueError("gap must be positive")
    lq = 1 - math.exp(-lb)
    uq = 1 - math.exp(-ub)
    q = uq - lq
    n = math.ceil(q / gap)
    points = [lb]
    points.extend(exp_quantile(lq + i * q / n) for i in range(1, n))
    points.append(ub)
    return points


def get_prop(lb1: float, ub1: float, lb2: float, ub2: float) -> float:
    """Share of the exponential mass of ``[lb2, ub2]`` that lies in ``[lb1, ub1]``.

    A second interval narrower than 1e-6 counts as fully covered.
    """
    if ub2 - lb2 < _NARROW_INTERVAL:
        return 1.0
    p1 = math.exp(-lb1) - math.exp(-ub1)
    p2 = math.exp(-lb2) - math.exp(-ub2)
    return p1 / p2


def interval_factors(bounds: Sequence[tuple[float, float]]) -> list[float]:
    """Ratios of the exponential mass of each interval to that of the one before.

    The first factor is 0. After a point interval the factor is 0, after an
    interval narrower than 1e-4 it is 5, and no factor exceeds 5.
    """
    factors: list[float] = []
    previous: tuple[float, float] | None = None
    for lb, ub in bounds:
        if previous is None:
            factor = 0.0
        else:
            prev_lb, prev_ub = previous
            if prev_ub == prev_lb:
                factor = 0.0
            elif prev_ub - prev_lb < _TINY_INTERVAL:
                factor = _MAX_FACTOR
            else:
                mass = math.exp(-lb) - math.exp(-ub)
                prev_mass = math.exp(-prev_lb) - math.exp(-prev_ub)
                factor = min(mass / prev_mass, _MAX_FACTOR)
        if math.isnan(factor) or math.isinf(factor):
            raise ArithmeticError(f"invalid factor for interval [{lb}, {ub}]")
        factors.append(factor)
        previous = (lb, ub)
    return factors


def _jitter(rng: random.Random) -> float:
    return 0.45 + 0.1 * rng.random()


def exp_median(lb: float, ub: float, rng: random.Random | None = None) -> float:
    """A time near the exponential median of ``[lb, ub]``, slightly jittered.

    Unbounded intervals give a time up to 2 above ``lb``; narrow intervals
    and intervals above 10 use a jittered linear midpoint instead.
    """
    if lb > ub:
        raise ValueError(f"lower bound {lb} exceeds upper bound {ub}")
    rng = rng if rng is not None else random.Random()
    if math.isinf(ub):
        return lb + 2 * rng.random()
    if ub - lb <= 0.005 or lb > 10:
        return _jitter(rng) * (ub - lb) + lb
    lq = 1 - math.exp(-lb)
    uq = 1 - math.exp(-ub)
    mq = _jitter(rng) * (uq - lq) + lq
    m = -math.log(1 - mq)
    if not lb <= m <= ub:
        raise ArithmeticError(f"median {m} outside [{lb}, {ub}]")
    return m


def sample_time_near(
    lb: float, ub: float, t: float, rng: random.Random | None = None
) -> float:
    """Draw a time in ``(lb, ub)``, leaning towards ``t``.

    The draw follows the exponential restricted to the interval; it is
    mirrored within the interval when ``lb`` lies below ``t``. Intervals
    ending below 0.01 give a fixed point near their top.
    """
    rng = rng if rng is not None else random.Random()
    p = rng.random()
    lq = 1 - math.exp(-lb)
    uq = 1 - math.exp(-ub)
    q = p * lq + (1 - p) * uq
    x = -math.log(1 - q)
    if ub < 0.01:
        new_t = 0.95 * ub + 0.05 * lb
    elif lb < t:
        new_t = lb + ub - x
    else:
        new_t = x
    if not lb < new_t < ub:
        raise ArithmeticError(f"sampled time {new_t} outside ({lb}, {ub})")
    return new_t


def emission_counts(
    sites: Iterable[float],
    lower_state: Callable[[float], float],
    upper_state: Callable[[float], float],
    query_state: Callable[[float], float],
) -> list[float]:
    """Mismatch counts over ``sites`` for the three branches meeting at a new node.

    The new node takes the majority state of the lower, upper and query
    nodes. The counts are, in order: lower vs new, upper vs new, query vs
    new, and lower vs upper.
    """
    counts = [0.0, 0.0, 0.0, 0.0]
    for x in sites:
        sl = lower_state(x)
        su = upper_state(x)
        s0 = query_state(x)
        sm = 1.0 if sl + su + s0 > 1.5 else 0.0
        counts[0] += abs(sm - sl)
        counts[1] += abs(sm - su)
        counts[2] += abs(sm - s0)
        counts[3] += abs(sl - su)
    return counts


def forward_step(
    prev_probs: Sequence[float],
    diagonals: Sequence[float],
    lower_diagonals: Sequence[float],
    upper_diagonals: Sequence[float],
    factors: Sequence[float],
    point_mask: Sequence[bool] | None = None,
    epsilon: float = DEFAULT_EPSILON,
) -> list[float]:
    """One forward step of the banded transition, in linear time.

    Mass from lower states arrives through ``upper_diagonals`` propagated by
    ``factors``; mass from higher states through ``lower_diagonals`` times
    the sum above. States not marked in ``point_mask`` keep at least
    ``epsilon``.
    """
    dim = len(prev_probs)
    if point_mask is None:
        point_mask = [False] * dim
    for name, values in (
        ("diagonals", diagonals),
        ("lower_diagonals", lower_diagonals),
        ("upper_diagonals", upper_diagonals),
        ("factors", factors),
        ("point_mask", point_mask),
    ):
        if len(values) != dim:
            raise ValueError(f"{name} has length {len(values)}, expected {dim}")

    lower_sums = [0.0] * dim
    for i in range(1, dim):
        lower_sums[i] = upper_diagonals[i] * prev_probs[i - 1] + factors[i] * lower_sums[i - 1]
        if math.isnan(lower_sums[i]):
            raise ArithmeticError("lower sum is not a number")

    upper_sums = [0.0] * dim
    running = 0.0
    for i in range(dim - 2, -1, -1):
        running += prev_probs[i + 1]
        upper_sums[i] = running

    result = []
    for lower_sum, diag, prev, lower_diag, upper_sum, is_point in zip(
        lower_sums, diagonals, prev_probs, lower_diagonals, upper_sums, point_mask
    ):
        if lower_sum < 0:
            raise ArithmeticError("negative forward probability")
        value = lower_sum + diag * prev + lower_diag * upper_sum
        if not is_point:
            value = max(epsilon, value)
        result.append(value)
    return result