# argthread

Components for threading sampled haplotypes into an ancestral recombination
graph (ARG) under the sequentially Markov coalescent. Times are in coalescent
units. Every function that draws random numbers takes an optional
`random.Random`, so runs can be repeated exactly.

The package depends only on the standard library.

## Modules

### `argthread.rate_map`

`RateMap` is a piecewise-constant rate map.

- `RateMap.load(path)` reads whitespace-separated `left right rate` triples.
  It raises `FileNotFoundError` for a missing file and `ValueError` for a
  malformed or empty one.
- `find_index(x)` gives the index of the breakpoint at or before `x`.
- `cumulative_distance(x)` interpolates linearly between breakpoints.
- `segment_distance(x, y)` is the distance between two positions.
- `mean_rate()` is the total distance divided by `sequence_length`.

### `argthread.recombination`

This module defines three classes:

- `Node` has a `time` and an `index`. Nodes compare by identity.
- `Branch` is a frozen (`lower_node`, `upper_node`) pair. `Branch()` is the
  empty branch, and `is_null()` tests for it.
- `Recombination` holds the sets `deleted_branches` and `inserted_branches`
  between two adjacent trees.

From these sets, a `Recombination` works out:

- the deleted and inserted nodes (`find_nodes`)
- the target branch (`find_target_branch`)
- the merging, recombined, sister, parent and transfer branches
  (`find_recomb_info`)

It traces a lineage across the breakpoint with `trace_forward` and
`trace_backward`.

It keeps itself consistent when a lineage is cut out or threaded in. The
methods for this are `remove`, `remove_segment`, `add`, `break_front`,
`break_end`, `fix_front`, `fix_end` and `next_added_branch`.

### `argthread.rsp_smc`

`RecombinationSampler` sets the source branch and `start_time` of a
recombination that does not have one yet:

- `sample_recombination(r, cut_time, parents)` draws the start time by
  importance weighting. It uses the coalescence rates of the tree, given as a
  child-to-parent mapping.
- `approx_sample_recombination(r, cut_time, n=None)` picks a deterministic
  time.
- `adjust(r, cut_time, n=None)` recomputes the start time on the current
  source branch.

The module also has two helpers:

- `choose_time(lb, ub, n=None)` gives the deterministic time.
- `source_candidates(r)` lists the branches that can carry the breakpoint.

If no candidate fits, the sampler raises `RuntimeError`.

### `argthread.run_log`

These functions handle the tab-separated progress log:

- `start_log(path)` writes the header row.
- `append_entry(...)` appends a row. The position is written with 17
  significant digits.
- `read_last_line(path)` returns the words of the last complete row.
- `retract_log(path, k)` cuts the log back by `k` lines. It keeps at least
  the header and the first entry.

### `argthread.vcf_reader`

These functions read phased biallelic SNPs into `VariantData`. `VariantData`
holds:

- the haploid sample `Node`s
- a threading order
- each sample's set of variant positions, relative to the region start
- the counts of valid and removed sites

The reading functions are:

- `naive_read_vcf(path, start_pos, end_pos, rng=None)` scans the whole file
  and shuffles the sample order.
- `guide_read_vcf(vcf_path, index_path, start, end)` starts reading at the
  byte offset that an index file gives for `start`.
- `load_vcf(prefix, start, end, rng=None)` reads `prefix.vcf`. It goes
  through `prefix.index` when that file exists.

Multi-character alleles and repeated positions are dropped. Counts are
reported through `logging`.

### `argthread.transition`

`TransitionKernel(cut_time, lower_bound)` provides the transition
distributions:

- `recomb_cdf`, `recomb_prob` and `recomb_quantile` for a recombining
  lineage that rejoins
- `standard_recomb_cdf`
- `psmc_cdf` and `psmc_prob` for the PSMC-style transition from time `s`

### `argthread.hmm_math`

These are the numerical pieces of the forward pass and trace-back:

- `exp_quantile`
- `generate_grid`, which gives breakpoints of equal exponential mass
- `get_prop`
- `interval_factors`
- `exp_median` and `sample_time_near`, which choose times inside an interval
- `emission_counts`, which counts mismatches against a majority-state node
- `forward_step`, a single linear-time banded forward update

## Example

```python
import random

from argthread.hmm_math import exp_median, generate_grid
from argthread.rate_map import RateMap

rates = RateMap.load("recomb_map.txt")
print(rates.mean_rate(), rates.segment_distance(1000, 5000))

grid = generate_grid(0.0, 2.0, 0.05)
print(exp_median(grid[0], grid[1], random.Random(1)))
```

## What it does not do

This package is a library of parts. It does not do the following:

- It has no command-line program.
- It has no ARG or marginal-tree data structure beyond the branch sets of a
  `Recombination`.
- It does not run a full threading HMM or a sampling loop.
- It does not read or write ARG node, branch, recombination or mutation
  files.
- It does not rescale branch lengths.

A caller supplies the trees, for example as the child-to-parent mapping that
`sample_recombination` takes, and drives the sampling itself.

## Development

```
pip install -e ".[test]"
pytest
```