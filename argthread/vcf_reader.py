"""Reading phased biallelic variants from VCF files into sample nodes."""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

from argthread.recombination import Node

logger = logging.getLogger(__name__)

_PathArg = str | PathLike[str]
_FIXED_COLUMNS = 9
_MIN_VALID_VARIANTS = 3


@dataclass
class VariantData:
    """Haploid sample nodes and the variant positions each one carries."""

    sample_nodes: list[Node] = field(default_factory=list)
    ordered_nodes: list[Node] = field(default_factory=list)
    mutations: list[set[float]] = field(default_factory=list)
    sequence_length: float = 0.0
    valid_mutations: int = 0
    removed_mutations: int = 0

    @property
    def num_samples(self) -> int:
        """Number of haploid samples."""
        return len(self.sample_nodes)


@dataclass(frozen=True)
class _Record:
    pos: int
    ref: str
    alt: str
    genotypes: list[str]


def _parse_record(line: str) -> _Record:
    fields = line.split()
    if len(fields) < _FIXED_COLUMNS:
        raise ValueError(f"malformed VCF record: {line!r}")
    try:
        pos = int(fields[1])
    except ValueError as exc:
        raise ValueError(f"malformed VCF position: {line!r}") from exc
    return _Record(pos, fields[3], fields[4], fields[_FIXED_COLUMNS:])


def _peek_pos(line: str) -> int | None:
    fields = line.split()
    if len(fields) < 2:
        return None
    try:
        return int(fields[1])
    except ValueError:
        return None


def _next_is_duplicate(lines: deque[str], pos: int) -> bool:
    """True if the following line has the same position; that line is then consumed."""
    if lines and _peek_pos(lines[0]) == pos:
        lines.popleft()
        return True
    return False


def _haplotype_states(genotypes: list[str]) -> list[int]:
    states = []
    for genotype in genotypes:
        states.append(1 if genotype[0:1] == "1" else 0)
        states.append(1 if genotype[2:3] == "1" else 0)
    return states


def _new_nodes(count: int) -> list[Node]:
    return [Node(time=0.0, index=i) for i in range(count)]


def _record_site(data: VariantData, states: list[int], position: float) -> None:
    carriers = sum(states)
    if 1 <= carriers < len(states):
        data.valid_mutations += 1
        for state, node_mutations in zip(states, data.mutations):
            if state == 1:
                node_mutations.add(position)


def _read_lines(path: Path) -> deque[str]:
    if not path.is_file():
        raise FileNotFoundError(f"VCF file not found: {path}")
    return deque(path.read_text(encoding="utf-8").splitlines())


def naive_read_vcf(
    path: _PathArg, start_pos: float, end_pos: float, rng: random.Random | None = None
) -> VariantData:
    """Scan a whole VCF, keeping sites in ``[start_pos, end_pos]``.

    Multi-allelic sites, repeated positions and structural variants are
    dropped. The sample order used for threading is shuffled with ``rng``.
    """
    rng = rng if rng is not None else random.Random()
    lines = _read_lines(Path(path))
    data = VariantData()
    genotypes: list[int] = []
    prev_pos: int | None = None

    while lines:
        line = lines.popleft()
        if not line:
            continue
        if line.startswith("#CHROM"):
            num_individuals = len(line.split()) - _FIXED_COLUMNS
            data.sample_nodes = _new_nodes(2 * num_individuals)
            data.mutations = [set() for _ in data.sample_nodes]
            genotypes = [0] * (2 * num_individuals)
            continue
        if line.startswith("#"):
            continue
        record = _parse_record(line)
        if record.pos < start_pos:
            continue
        if record.pos > end_pos:
            break
        if record.pos == prev_pos:
            continue
        if len(record.ref) > 1 or len(record.alt) > 1:
            data.removed_mutations += 1
            continue
        if _next_is_duplicate(lines, record.pos):
            data.removed_mutations += 1
            prev_pos = record.pos
            continue
        states = _haplotype_states(record.genotypes)
        if len(states) > len(genotypes):
            raise ValueError(f"record at {record.pos} has more samples than the header")
        genotypes[: len(states)] = states
        _record_site(data, genotypes, record.pos - start_pos)

    data.ordered_nodes = list(data.sample_nodes)
    rng.shuffle(data.ordered_nodes)
    data.sequence_length = end_pos - start_pos
    logger.info("valid mutations: %d", data.valid_mutations)
    logger.info("removed mutations: %d", data.removed_mutations)
    return data


def _find_offset(index_path: Path, start: float) -> int:
    if not index_path.is_file():
        raise FileNotFoundError(f"Index file not found: {index_path}")
    for line in index_path.read_text(encoding="utf-8").splitlines():
        fields = line.split()
        if len(fields) < 2:
            continue
        try:
            segment_start = float(fields[0])
            offset = int(fields[1])
        except ValueError:
            continue
        if segment_start == start:
            return offset
    raise ValueError(f"Start position not found in index file: {index_path}")


def guide_read_vcf(
    vcf_path: _PathArg, index_path: _PathArg, start: float, end: float
) -> VariantData:
    """Read sites in ``[start, end)`` from the byte offset the index gives for ``start``."""
    offset = _find_offset(Path(index_path), start)
    vcf = Path(vcf_path)
    if not vcf.is_file():
        raise FileNotFoundError(f"VCF file not found: {vcf}")
    with open(vcf, "rb") as handle:
        handle.seek(offset)
        lines = deque(handle.read().decode("utf-8").splitlines())

    data = VariantData()
    genotypes: list[int] = []
    prev_pos: int | None = None

    while lines:
        line = lines.popleft()
        if not line:
            continue
        record = _parse_record(line)
        if record.pos == prev_pos:
            continue
        if record.pos >= end:
            break
        if len(record.ref) > 1 or len(record.alt) > 1:
            data.removed_mutations += 1
            continue
        if _next_is_duplicate(lines, record.pos):
            data.removed_mutations += 1
            prev_pos = record.pos
            continue
        states = _haplotype_states(record.genotypes)
        if len(states) > len(genotypes):
            genotypes.extend([0] * (len(states) - len(genotypes)))
        genotypes[: len(states)] = states
        if not data.sample_nodes:
            data.sample_nodes = _new_nodes(len(genotypes))
            data.mutations = [set() for _ in data.sample_nodes]
        elif len(data.sample_nodes) != len(genotypes):
            raise ValueError(f"record at {record.pos} changes the number of samples")
        _record_site(data, genotypes, record.pos - start)

    if data.valid_mutations < _MIN_VALID_VARIANTS:
        logger.warning("there are too few variants in this region, algorithm not run")
    data.ordered_nodes = list(data.sample_nodes)
    data.sequence_length = end - start
    logger.info("valid mutations: %d", data.valid_mutations)
    logger.info("removed mutations: %d", data.removed_mutations)
    return data


def load_vcf(
    prefix: str, start: float, end: float, rng: random.Random | None = None
) -> VariantData:
    """Read ``prefix.vcf``, through ``prefix.index`` when that file exists."""
    index_path = Path(prefix + ".index")
    vcf_path = Path(prefix + ".vcf")
    if index_path.is_file():
        return guide_read_vcf(vcf_path, index_path, start, end)
    return naive_read_vcf(vcf_path, start, end, rng)