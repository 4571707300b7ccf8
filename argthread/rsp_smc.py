"""Sampling of recombination breakpoints under the sequentially Markov coalescent."""

from __future__ import annotations

import math
import random
from bisect import bisect_right
from collections.abc import Mapping

from argthread.recombination import Branch, Node, Recombination


def _node_order(node: Node | None) -> tuple[float, int, int]:
    if node is None:
        return (-math.inf, -1, 0)
    return (node.time, node.index, id(node))


def _branch_order(branch: Branch) -> tuple:
    return (_node_order(branch.upper_node), _node_order(branch.lower_node))


def source_candidates(r: Recombination) -> list[Branch]:
    """Deleted branches below the deleted node that can be the recombining lineage."""
    candidates = []
    for b in sorted(r.deleted_branches, key=_branch_order):
        if b.upper_node is not r.deleted_node:
            continue
        if b.lower_node.time >= r.inserted_node.time:
            continue
        if r.create(Branch(b.lower_node, r.inserted_node)):
            candidates.append(b)
    return candidates


def choose_time(lb: float, ub: float, n: float | None = None) -> float:
    """A deterministic breakpoint time between ``lb`` and ``ub``.

    Without ``n`` the time is the log of the mean of ``exp`` over the bounds;
    with ``n`` (the number of lineages) the rate is adjusted for that count.
    Intervals narrower than 0.01 give their midpoint.
    """
    if n is None:
        if math.isinf(ub):
            raise ValueError("upper bound must be finite")
        mt = ub + math.log(0.5 * (math.exp(lb - ub) + 1.0))
    else:
        if n > 1:
            lam = n / (n + (1 - n) * math.exp(-0.5 * lb))
        else:
            lam = 1.0
        low = math.exp(lam * lb - lam * ub)
        mt = ub + math.log(0.5 * (low + 1.0)) / lam
    if ub - lb < 0.01:
        mt = 0.5 * (lb + ub)
    if not lb <= mt <= ub:
        raise RuntimeError(f"chosen time {mt} outside [{lb}, {ub}]")
    return mt


def _needs_sampling(r: Recombination) -> bool:
    return r.pos != 0 and r.start_time <= 0 and bool(r.deleted_branches)


def _no_candidates(r: Recombination, count: int) -> RuntimeError:
    return RuntimeError(f"no candidates in smc sampling at {r.pos} ({count} found)")


class RecombinationSampler:
    """Chooses source branches and start times for recombination events."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng if rng is not None else random.Random()
        self._rate_times: list[float] = []
        self._rates: list[int] = []

    def sample_recombination(
        self, r: Recombination, cut_time: float, parents: Mapping[Node, Node]
    ) -> None:
        """Sample the source branch and start time of ``r`` by importance weighting.

        ``parents`` maps each node of the current tree to its parent.
        """
        if not _needs_sampling(r):
            return
        self._compute_coalescence_rates(parents, r, cut_time)
        candidates = source_candidates(r)
        join_time = r.inserted_node.time
        if len(candidates) == 1:
            r.source_branch = candidates[0]
            r.start_time = self._sample_start_time(r.source_branch, 20, join_time, cut_time)
        elif len(candidates) == 2:
            r.source_branch, r.start_time = self._sample_start_time_pair(
                candidates[0], candidates[1], 40, join_time, cut_time
            )
        else:
            raise _no_candidates(r, len(candidates))
        r.find_target_branch()
        r.find_recomb_info()
        self._check_branches(r)
        if not cut_time <= r.start_time <= join_time:
            raise RuntimeError("sampled start time outside its bounds")

    def approx_sample_recombination(
        self, r: Recombination, cut_time: float, n: float | None = None
    ) -> None:
        """Choose the source branch and a deterministic start time for ``r``."""
        if not _needs_sampling(r):
            return
        candidates = source_candidates(r)
        join_time = r.inserted_node.time
        if len(candidates) == 1:
            r.source_branch = candidates[0]
            lb = max(cut_time, r.source_branch.lower_node.time)
            ub = min(r.source_branch.upper_node.time, join_time)
            r.start_time = choose_time(lb, ub, n)
        elif len(candidates) == 2:
            first, second = candidates
            lb1 = max(cut_time, first.lower_node.time)
            lb2 = max(cut_time, second.lower_node.time)
            ub1 = min(first.upper_node.time, join_time)
            ub2 = min(second.upper_node.time, join_time)
            q = (ub1 - lb1) / (ub1 + ub2 - lb1 - lb2)
            if 0.5 <= q:
                r.source_branch = first
                r.start_time = choose_time(lb1, ub1, n)
            else:
                r.source_branch = second
                r.start_time = choose_time(lb2, ub2, n)
        else:
            raise _no_candidates(r, len(candidates))
        if r.deleted_node.time == r.inserted_node.time:
            r.inserted_node.time = math.nextafter(r.inserted_node.time, math.inf)
        r.find_target_branch()
        r.find_recomb_info()
        self._check_branches(r)
        if r.start_time < cut_time:
            raise RuntimeError("start time below the cut time")
        ub = min(r.deleted_node.time, r.inserted_node.time)
        if r.start_time >= ub:
            r.start_time = math.nextafter(ub, -math.inf)

    def adjust(self, r: Recombination, cut_time: float, n: float | None = None) -> None:
        """Recompute the start time of ``r`` on its current source branch."""
        if not _needs_sampling(r):
            return
        lb = max(cut_time, r.source_branch.lower_node.time)
        ub = min(r.deleted_node.time, r.inserted_node.time)
        r.start_time = choose_time(lb, ub, n)
        if r.start_time >= ub or r.start_time <= lb:
            r.start_time = 0.5 * (lb + ub)

    @staticmethod
    def _check_branches(r: Recombination) -> None:
        if r.target_branch.is_null():
            raise RuntimeError("recombination has no target branch")
        if r.merging_branch.is_null():
            raise RuntimeError("recombination has no merging branch")

    def _random_time(self, lb: float, ub: float, q: float = 0.01) -> float:
        return (q * self.rng.random() + (1 - q)) * (ub - lb) + lb

    def _pick(self, samples: list[tuple[float, float]]) -> int:
        remaining = sum(w for _, w in samples) * self.rng.random()
        for index, (_, weight) in enumerate(samples):
            remaining -= weight
            if remaining <= 0:
                return index
        return len(samples) - 1

    def _sample_start_time(
        self, branch: Branch, density: int, join_time: float, cut_time: float
    ) -> float:
        lb = max(cut_time, branch.lower_node.time)
        ub = min(join_time, branch.upper_node.time)
        if not lb < ub:
            raise ValueError(f"empty time range [{lb}, {ub}] on source branch")
        samples = []
        for _ in range(density):
            t = self._random_time(lb, ub)
            samples.append((t, self._recomb_pdf(t, ub)))
        return samples[self._pick(samples)][0]

    def _sample_start_time_pair(
        self, b1: Branch, b2: Branch, density: int, join_time: float, cut_time: float
    ) -> tuple[Branch, float]:
        bounds = []
        for b in (b1, b2):
            lb = max(b.lower_node.time, cut_time)
            ub = min(b.upper_node.time, join_time)
            if not lb < ub:
                raise ValueError(f"empty time range [{lb}, {ub}] on candidate branch")
            bounds.append((lb, ub))
        (lb1, ub1), (lb2, ub2) = bounds
        q = (ub1 - lb1) / (ub1 + ub2 - lb1 - lb2)
        n1 = math.floor(density * q + 0.5)
        counts = (n1, density - n1)
        samples: list[tuple[float, float]] = []
        owners: list[Branch] = []
        for branch, (lb, ub), count in zip((b1, b2), bounds, counts):
            for _ in range(count):
                t = self._random_time(lb, ub)
                samples.append((t, self._recomb_pdf(t, ub)))
                owners.append(branch)
        index = self._pick(samples)
        return owners[index], samples[index][0]

    def _compute_coalescence_rates(
        self, parents: Mapping[Node, Node], r: Recombination, cut_time: float
    ) -> None:
        times = [cut_time]
        times.extend(
            child.time
            for child, parent in parents.items()
            if child.time > cut_time and parent is not r.deleted_node
        )
        times.append(math.inf)
        times.sort()
        count = len(times)
        rates: dict[float, int] = {}
        for i, t in enumerate(times):
            rates[t] = count - i - 1
        self._rate_times = sorted(rates)
        self._rates = [rates[t] for t in self._rate_times]

    def _recomb_pdf(self, s: float, t: float) -> float:
        pdf = 1.0
        curr_time = s
        next_time = s
        index = bisect_right(self._rate_times, s) - 1
        while next_time < t:
            rate = self._rates[index]
            index += 1
            next_time = self._rate_times[index]
            pdf *= math.exp(-rate * (min(t, next_time) - curr_time))
            curr_time = next_time
        return pdf