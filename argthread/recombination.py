"""Recombination events between adjacent marginal trees."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

TERMINAL_POS = float(2**31 - 1)


@dataclass(eq=False)
class Node:
    """A node of the graph; nodes compare by identity."""

    time: float
    index: int = -1


@dataclass(frozen=True)
class Branch:
    """A branch from a lower node up to an upper node."""

    lower_node: Node | None = None
    upper_node: Node | None = None

    def is_null(self) -> bool:
        """True for the empty branch."""
        return self.lower_node is None and self.upper_node is None


def _node_key(node: Node | None) -> tuple[float, int, int]:
    if node is None:
        return (-math.inf, -1, 0)
    return (node.time, node.index, id(node))


def _branch_key(branch: Branch) -> tuple:
    return (_node_key(branch.upper_node), _node_key(branch.lower_node))


def _ordered(branches: Iterable[Branch]) -> list[Branch]:
    return sorted(branches, key=_branch_key)


NULL_BRANCH = Branch()


@dataclass
class Recombination:
    """The change between two adjacent trees: deleted and inserted branches."""

    deleted_branches: set[Branch] = field(default_factory=set)
    inserted_branches: set[Branch] = field(default_factory=set)
    pos: float = 0.0
    source_branch: Branch = NULL_BRANCH
    target_branch: Branch = NULL_BRANCH
    source_sister_branch: Branch = NULL_BRANCH
    source_parent_branch: Branch = NULL_BRANCH
    recombined_branch: Branch = NULL_BRANCH
    merging_branch: Branch = NULL_BRANCH
    lower_transfer_branch: Branch = NULL_BRANCH
    upper_transfer_branch: Branch = NULL_BRANCH
    start_time: float = -1.0
    deleted_node: Node | None = None
    inserted_node: Node | None = None

    def __post_init__(self) -> None:
        self.deleted_branches = set(self.deleted_branches)
        self.inserted_branches = set(self.inserted_branches)
        if self.deleted_branches or self.inserted_branches:
            self.simplify_branches()
            self.find_nodes()

    def affect(self, branch: Branch) -> bool:
        """True if ``branch`` is deleted by this recombination."""
        return branch in self.deleted_branches

    def create(self, branch: Branch) -> bool:
        """True if ``branch`` is inserted by this recombination."""
        return branch in self.inserted_branches

    def find_nodes(self) -> None:
        """Find the deleted and inserted nodes from the branch upper nodes."""
        prev_nodes = {b.upper_node for b in self.deleted_branches}
        next_nodes = {b.upper_node for b in self.inserted_branches}
        for node in sorted(prev_nodes - next_nodes, key=_node_key):
            self.deleted_node = node
        for node in sorted(next_nodes - prev_nodes, key=_node_key):
            self.inserted_node = node

    def _target_candidates(self) -> list[tuple[Branch, bool, bool]]:
        t = self.inserted_node.time
        candidates = []
        for b in _ordered(self.deleted_branches):
            if b.lower_node.time > t or b.upper_node.time < t or b == self.source_branch:
                continue
            has_lower = Branch(b.lower_node, self.inserted_node) in self.inserted_branches
            has_upper = Branch(self.inserted_node, b.upper_node) in self.inserted_branches
            candidates.append((b, has_lower, has_upper))
        return candidates

    def find_target_branch(self) -> None:
        """Find the deleted branch that the inserted node splits."""
        candidates = self._target_candidates()
        for b, has_lower, has_upper in candidates:
            if has_lower and has_upper:
                self.target_branch = b
                return
        for b, has_lower, has_upper in candidates:
            if has_lower or has_upper:
                self.target_branch = b
                return
        self.target_branch = NULL_BRANCH

    def find_recomb_info(self) -> None:
        """Derive merging, recombined, sister, parent and transfer branches."""
        if self.pos in (0, TERMINAL_POS):
            return
        lower = upper = None
        for b in _ordered(self.deleted_branches):
            if b == self.source_branch:
                continue
            if b.upper_node is self.deleted_node:
                lower = self.inserted_node if b == self.target_branch else b.lower_node
            elif b.lower_node is self.deleted_node:
                upper = self.inserted_node if b == self.target_branch else b.upper_node
        self.merging_branch = Branch(lower, upper)
        self.recombined_branch = Branch(self.source_branch.lower_node, self.inserted_node)
        self.source_sister_branch = self.search_upper_node(self.deleted_node)
        self.source_parent_branch = self.search_lower_node(self.deleted_node)

        lower_transfer = Branch(self.target_branch.lower_node, self.inserted_node)
        self.lower_transfer_branch = (
            lower_transfer if self.create(lower_transfer) else self.merging_branch
        )
        upper_transfer = Branch(self.inserted_node, self.target_branch.upper_node)
        self.upper_transfer_branch = (
            upper_transfer if self.create(upper_transfer) else self.merging_branch
        )

    def trace_forward(self, t: float, curr_branch: Branch) -> Branch:
        """The branch that a lineage at time ``t`` on ``curr_branch`` moves to."""
        if self.pos in (0, TERMINAL_POS):
            return NULL_BRANCH
        if not self.affect(curr_branch):
            return curr_branch
        if curr_branch == self.source_branch:
            return NULL_BRANCH if t >= self.start_time else self.recombined_branch
        if curr_branch == self.target_branch:
            if t > self.inserted_node.time:
                return self.upper_transfer_branch
            return self.lower_transfer_branch
        return self.merging_branch

    def trace_backward(self, t: float, curr_branch: Branch) -> Branch:
        """The branch in the previous tree that ``curr_branch`` at ``t`` came from."""
        if not self.deleted_branches:
            return NULL_BRANCH
        if not self.create(curr_branch):
            return curr_branch
        if curr_branch == self.recombined_branch:
            return NULL_BRANCH if t >= self.start_time else self.source_branch
        if curr_branch != self.merging_branch:
            return self.target_branch
        if t > self.deleted_node.time:
            return self.search_lower_node(self.deleted_node)
        return self.search_upper_node(self.deleted_node)

    def prev_joining_branch(self, removed_branch: Branch, joining_branch: Branch) -> Branch:
        """The joining branch in the previous tree, where it can be told."""
        if not self.affect(removed_branch) and not self.affect(joining_branch):
            return joining_branch
        if removed_branch == self.source_branch:
            return self.target_branch
        return NULL_BRANCH

    def remove(
        self,
        prev_removed_branch: Branch,
        next_removed_branch: Branch,
        prev_split_branch: Branch,
        next_split_branch: Branch,
        cut_node: Node | None,
    ) -> None:
        """Update the event after a lineage is cut out of both trees."""
        if not self.deleted_branches and not self.inserted_branches:
            return
        if prev_removed_branch == next_removed_branch and prev_split_branch == next_split_branch:
            return
        if prev_removed_branch.is_null():
            self.break_front(next_removed_branch, next_split_branch, cut_node)
            return
        if next_removed_branch.is_null():
            self.break_end(prev_removed_branch, prev_split_branch, cut_node)
            return
        self._record_removal(
            prev_removed_branch, next_removed_branch, prev_split_branch, next_split_branch
        )
        self._add_deleted(Branch(prev_removed_branch.lower_node, cut_node))
        self._add_inserted(Branch(next_removed_branch.lower_node, cut_node))
        self.simplify_branches()
        self._repair_source(prev_removed_branch, prev_split_branch)
        self.find_nodes()
        self.find_target_branch()
        if self.deleted_branches:
            self.find_recomb_info()
        if self.deleted_branches and self.source_branch not in self.deleted_branches:
            raise RuntimeError("source branch lost after removal")

    def remove_segment(
        self,
        prev_removed_branch: Branch,
        next_removed_branch: Branch,
        prev_split_branch: Branch,
        next_split_branch: Branch,
    ) -> None:
        """Update the event after removing a lineage without a cut node."""
        self._record_removal(
            prev_removed_branch, next_removed_branch, prev_split_branch, next_split_branch
        )
        self.simplify_branches()
        if not self.deleted_branches and not self.inserted_branches:
            return
        self._repair_source(prev_removed_branch, prev_split_branch)
        self.find_nodes()
        self.find_target_branch()
        self.find_recomb_info()

    def add(
        self,
        prev_added_branch: Branch,
        next_added_branch: Branch,
        prev_joining_branch: Branch,
        next_joining_branch: Branch,
        cut_node: Node | None,
    ) -> None:
        """Update the event after a lineage is threaded into both trees."""
        if prev_added_branch == next_added_branch and prev_joining_branch == next_joining_branch:
            return
        if not next_added_branch.is_null():
            self._add_inserted(next_added_branch)
            self._add_inserted(Branch(next_joining_branch.lower_node, next_added_branch.upper_node))
            self._add_inserted(Branch(next_added_branch.upper_node, next_joining_branch.upper_node))
            self._add_deleted(next_joining_branch)
            if cut_node is not None:
                self._add_deleted(Branch(next_added_branch.lower_node, cut_node))
        if not prev_added_branch.is_null():
            self._add_deleted(prev_added_branch)
            self._add_deleted(Branch(prev_joining_branch.lower_node, prev_added_branch.upper_node))
            self._add_deleted(Branch(prev_added_branch.upper_node, prev_joining_branch.upper_node))
            self._add_inserted(prev_joining_branch)
            if cut_node is not None:
                self._add_inserted(Branch(prev_added_branch.lower_node, cut_node))
        self.simplify_branches()
        if self.pos == 0:
            return
        if len(self.deleted_branches) != len(self.inserted_branches):
            raise RuntimeError("unbalanced recombination after adding a lineage")
        if not self.deleted_branches:
            return
        self.find_nodes()
        if prev_joining_branch == self.source_branch:
            if prev_added_branch.upper_node is next_added_branch.upper_node:
                self.source_branch = Branch(
                    prev_added_branch.upper_node, self.source_branch.upper_node
                )
            else:
                self.source_branch = Branch(
                    self.source_branch.lower_node, prev_added_branch.upper_node
                )
        else:
            self.source_branch = self.search_lower_node(self.source_branch.lower_node)
        self.find_target_branch()
        self.find_recomb_info()

    def break_front(
        self, next_removed_branch: Branch, next_split_branch: Branch, cut_node: Node | None = None
    ) -> None:
        """Record a removal that exists only in the next tree."""
        self._add_deleted(next_removed_branch)
        self._add_deleted(Branch(next_split_branch.lower_node, next_removed_branch.upper_node))
        self._add_deleted(Branch(next_removed_branch.upper_node, next_split_branch.upper_node))
        self._add_inserted(next_split_branch)
        self._add_inserted(Branch(next_removed_branch.lower_node, cut_node))
        self.simplify_branches()

    def break_end(
        self, prev_removed_branch: Branch, prev_split_branch: Branch, cut_node: Node | None = None
    ) -> None:
        """Record a removal that exists only in the previous tree."""
        self._add_inserted(prev_removed_branch)
        self._add_inserted(Branch(prev_split_branch.lower_node, prev_removed_branch.upper_node))
        self._add_inserted(Branch(prev_removed_branch.upper_node, prev_split_branch.upper_node))
        self._add_deleted(prev_split_branch)
        self._add_deleted(Branch(prev_removed_branch.lower_node, cut_node))
        self.simplify_branches()

    def fix_front(
        self, next_added_branch: Branch, next_joining_branch: Branch, cut_node: Node | None
    ) -> None:
        """Record an addition that exists only in the next tree."""
        self._add_inserted(next_added_branch)
        self._add_inserted(Branch(next_joining_branch.lower_node, next_added_branch.upper_node))
        self._add_inserted(Branch(next_added_branch.upper_node, next_joining_branch.upper_node))
        self._add_deleted(next_joining_branch)
        self._add_deleted(Branch(next_added_branch.lower_node, cut_node))
        self._finish_fix()

    def fix_end(
        self, prev_added_branch: Branch, prev_joining_branch: Branch, cut_node: Node | None
    ) -> None:
        """Record an addition that exists only in the previous tree."""
        if not self.deleted_branches and not self.inserted_branches:
            return
        self._add_deleted(prev_added_branch)
        self._add_deleted(Branch(prev_joining_branch.lower_node, prev_added_branch.upper_node))
        self._add_deleted(Branch(prev_added_branch.upper_node, prev_joining_branch.upper_node))
        self._add_inserted(prev_joining_branch)
        self._add_inserted(Branch(prev_added_branch.lower_node, cut_node))
        self._finish_fix()

    def next_added_branch(
        self, prev_joining_branch: Branch, prev_added_branch: Branch, base_node: Node
    ) -> Branch:
        """The added branch in the next tree, given where it joined the previous one."""
        prev_node = prev_added_branch.upper_node
        if prev_joining_branch == self.source_branch and prev_node.time > self.start_time:
            return Branch(base_node, self.deleted_node)
        return Branch(base_node, prev_node)

    def simplify_branches(self) -> None:
        """Drop branches that are both deleted and inserted."""
        common = self.deleted_branches & self.inserted_branches
        self.deleted_branches -= common
        self.inserted_branches -= common

    def search_upper_node(self, node: Node | None) -> Branch:
        """A deleted, non-source branch whose upper node is ``node``."""
        found = NULL_BRANCH
        for b in _ordered(self.deleted_branches):
            if b != self.source_branch and b.upper_node is node:
                found = b
        return found

    def search_lower_node(self, node: Node | None) -> Branch:
        """A deleted branch whose lower node is ``node``."""
        found = NULL_BRANCH
        for b in _ordered(self.deleted_branches):
            if b.lower_node is node:
                found = b
        return found

    def _add_deleted(self, branch: Branch) -> None:
        if branch.lower_node is not None and branch.upper_node is not None:
            self.deleted_branches.add(branch)

    def _add_inserted(self, branch: Branch) -> None:
        if branch.lower_node is not None and branch.upper_node is not None:
            self.inserted_branches.add(branch)

    def _record_removal(
        self,
        prev_removed_branch: Branch,
        next_removed_branch: Branch,
        prev_split_branch: Branch,
        next_split_branch: Branch,
    ) -> None:
        self._add_deleted(prev_split_branch)
        self._add_deleted(next_removed_branch)
        self._add_deleted(Branch(next_split_branch.lower_node, next_removed_branch.upper_node))
        self._add_deleted(Branch(next_removed_branch.upper_node, next_split_branch.upper_node))
        self._add_inserted(next_split_branch)
        self._add_inserted(prev_removed_branch)
        self._add_inserted(Branch(prev_split_branch.lower_node, prev_removed_branch.upper_node))
        self._add_inserted(Branch(prev_removed_branch.upper_node, prev_split_branch.upper_node))

    def _repair_source(self, prev_removed_branch: Branch, prev_split_branch: Branch) -> None:
        destroyed = (
            Branch(prev_split_branch.lower_node, prev_removed_branch.upper_node),
            Branch(prev_removed_branch.upper_node, prev_split_branch.upper_node),
        )
        if self.source_branch in destroyed:
            self.source_branch = prev_split_branch

    def _finish_fix(self) -> None:
        self.simplify_branches()
        if not self.deleted_branches:
            return
        self.source_branch = self.search_lower_node(self.source_branch.lower_node)
        self.find_nodes()
        self.find_target_branch()
        self.find_recomb_info()