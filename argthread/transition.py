"""Transition probabilities of the threading hidden Markov model.

Times are in coalescent units. ``cut_time`` is the time below which the
threaded lineage is fixed, and ``lower_bound`` is the lowest time reachable
on the current branch.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass

MIN_RECOMB_PROB = 1e-5
_NEAR_LOWER_BOUND = 0.005


@dataclass
class TransitionKernel:
    """Recombination and transition densities relative to a cut time."""

    cut_time: float = 0.0
    lower_bound: float = 0.0

    def recomb_cdf(self, s: float, t: float) -> float:
        """Probability that a lineage recombining below ``s`` rejoins below ``t``."""
        if math.isinf(t):
            return 1.0
        if t == 0:
            return 0.0
        length = s - self.cut_time
        if length == 0:
            raise ValueError("recombination time must lie above the cut time")
        if s > t:
            cdf = t + math.expm1(self.cut_time - t) - self.cut_time
        else:
            cdf = s + math.expm1(self.cut_time - t) - math.expm1(s - t) - self.cut_time
        cdf /= length
        if math.isnan(cdf):
            raise ArithmeticError("recombination cdf is not a number")
        return cdf

    def recomb_prob(self, s: float, t1: float, t2: float) -> float:
        """Probability of rejoining between ``t1`` and ``t2`` from a lineage at ``s``."""
        if t1 > t2:
            raise ValueError(f"lower time {t1} exceeds upper time {t2}")
        if t1 < self.cut_time or s < self.cut_time:
            raise ValueError("times must not lie below the cut time")
        if s - max(self.lower_bound, self.cut_time) < _NEAR_LOWER_BOUND:
            return math.exp(-t1) - math.exp(-t2)
        pl = self.recomb_cdf(s, t1)
        pu = self.recomb_cdf(s, t2)
        if pu < pl:
            raise ArithmeticError("recombination cdf is not monotone")
        return max(pu - pl, MIN_RECOMB_PROB)

    def recomb_quantile(
        self,
        s: float,
        q: float,
        lb: float,
        ub: float,
        rng: random.Random | None = None,
    ) -> float:
        """A time in ``[lb, ub]`` where the recombination cdf reaches ``q``.

        The search bisects in exponential space with a slightly jittered
        midpoint drawn from ``rng``.
        """
        rng = rng if rng is not None else random.Random()
        mid = lb
        gap = min(0.5 * (ub - lb), 1e-5)
        while ub - mid > gap:
            if self.recomb_cdf(s, mid) >= q:
                ub = mid
            else:
                lb = mid
            w = rng.random() * 0.02 + 0.49
            mid = -math.log(w * (math.exp(-lb) + math.exp(-ub)))
        return mid

    def standard_recomb_cdf(self, s: float, t: float) -> float:
        """Rejoining cdf for a lineage recombining uniformly below ``s``, without a cut."""
        if t <= s:
            integral = t + 0.5 * math.exp(-2 * t) - 0.5
        else:
            integral = (
                s
                + 0.5 * math.exp(-2 * s)
                - 0.5
                + (1 - math.exp(s - t)) * (1 - math.exp(-2 * s))
            )
        return integral / (2 * s)

    def psmc_cdf(self, rho: float, s: float, t: float) -> float:
        """Probability of recombining and rejoining below ``t`` from time ``s``."""
        cut, low = self.cut_time, self.lower_bound
        if t <= s:
            length = 2 * t - low - cut
        else:
            length = 2 * s - low - cut
        if length == 0:
            pre_factor = rho
        else:
            pre_factor = (1 - math.exp(-rho * length)) / length
        if t == cut and t == low:
            return 0.0
        if t <= s:
            integral = 2 * t + math.exp(-t) * (math.exp(cut) + math.exp(low)) - cut - low - 2
        else:
            integral = (
                2 * s
                + math.exp(cut - t)
                + math.exp(low - t)
                - 2 * math.exp(s - t)
                - cut
                - low
            )
        return pre_factor * integral

    def psmc_prob(self, rho: float, s: float, t1: float, t2: float) -> float:
        """Probability of moving from time ``s`` into ``[t1, t2]``.

        Includes the probability of not recombining when ``s`` lies in the
        interval (or the interval is the point ``s``).
        """
        if math.isinf(s):
            raise ValueError("source time must be finite")
        if t1 > t2:
            raise ValueError(f"lower time {t1} exceeds upper time {t2}")
        if t1 < self.lower_bound or s < self.lower_bound:
            raise ValueError("times must not lie below the lower bound")
        length = 2 * s - self.lower_bound - self.cut_time
        if (t1 == s and t2 == s) or (t1 < s < t2):
            base = math.exp(-rho * length)
        else:
            base = 0.0
        if t2 - t1 > 0:
            jump = self.psmc_cdf(rho, s, t2) - self.psmc_cdf(rho, s, t1)
        else:
            jump = 0.0
        prob = base + max(jump, 0.0)
        if math.isnan(prob) or not 0 <= prob <= 1:
            raise ArithmeticError(f"transition probability {prob} out of range")
        return prob