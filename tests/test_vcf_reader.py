import random

import pytest

from argthread.vcf_reader import (
    VariantData,
    guide_read_vcf,
    load_vcf,
    naive_read_vcf,
)

HEADER = (
    "##fileformat=VCFv4.2\n"
    "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tA\tB\n"
)


def row(pos, g1, g2, ref="A", alt="T"):
    return f"1\t{pos}\t.\t{ref}\t{alt}\t.\tPASS\t.\tGT\t{g1}\t{g2}\n"


def write_vcf(tmp_path, body, name="data"):
    path = tmp_path / f"{name}.vcf"
    path.write_text(HEADER + body)
    return path


def carriers(data, position):
    return [i for i, muts in enumerate(data.mutations) if position in muts]


def test_naive_basic_site(tmp_path):
    path = write_vcf(tmp_path, row(10, "0|1", "1|0"))
    data = naive_read_vcf(path, 0, 100, random.Random(1))
    assert data.num_samples == 4
    assert [n.index for n in data.sample_nodes] == [0, 1, 2, 3]
    assert all(n.time == 0.0 for n in data.sample_nodes)
    assert carriers(data, 10.0) == [1, 2]
    assert data.valid_mutations == 1
    assert data.removed_mutations == 0
    assert data.sequence_length == 100


def test_naive_monomorphic_sites_ignored(tmp_path):
    body = row(5, "0|0", "0|0") + row(6, "1|1", "1|1") + row(7, "1|0", "0|0")
    data = naive_read_vcf(write_vcf(tmp_path, body), 0, 100, random.Random(0))
    assert data.valid_mutations == 1
    assert carriers(data, 5.0) == []
    assert carriers(data, 6.0) == []
    assert carriers(data, 7.0) == [0]


def test_naive_structural_variant_removed(tmp_path):
    body = row(5, "0|1", "0|0", ref="AC") + row(8, "0|1", "0|0")
    data = naive_read_vcf(write_vcf(tmp_path, body), 0, 100, random.Random(0))
    assert data.removed_mutations == 1
    assert carriers(data, 5.0) == []
    assert carriers(data, 8.0) == [1]


def test_naive_duplicate_positions_dropped(tmp_path):
    body = row(20, "0|1", "0|0") + row(20, "1|0", "0|0") + row(20, "0|0", "1|0")
    body += row(30, "0|0", "0|1")
    data = naive_read_vcf(write_vcf(tmp_path, body), 0, 100, random.Random(0))
    assert data.removed_mutations == 1
    assert carriers(data, 20.0) == []
    assert carriers(data, 30.0) == [3]
    assert data.valid_mutations == 1


def test_naive_window_and_offset(tmp_path):
    body = row(5, "0|1", "0|0") + row(15, "1|0", "0|0") + row(25, "0|0", "0|1")
    data = naive_read_vcf(write_vcf(tmp_path, body), 10, 20, random.Random(0))
    assert data.valid_mutations == 1
    assert carriers(data, 15 - 10) == [0]
    assert data.sequence_length == 20 - 10
    assert all(not muts or muts == {5.0} for muts in data.mutations)


def test_naive_ordering_is_permutation(tmp_path):
    data = naive_read_vcf(write_vcf(tmp_path, row(3, "0|1", "1|0")), 0, 10, random.Random(7))
    assert sorted(n.index for n in data.ordered_nodes) == [0, 1, 2, 3]
    assert set(map(id, data.ordered_nodes)) == set(map(id, data.sample_nodes))


def test_naive_same_seed_same_order(tmp_path):
    path = write_vcf(tmp_path, row(3, "0|1", "1|0"))
    first = naive_read_vcf(path, 0, 10, random.Random(42))
    second = naive_read_vcf(path, 0, 10, random.Random(42))
    assert [n.index for n in first.ordered_nodes] == [n.index for n in second.ordered_nodes]


def test_naive_record_before_header_rejected(tmp_path):
    path = tmp_path / "bad.vcf"
    path.write_text(row(3, "0|1", "1|0") + HEADER)
    with pytest.raises(ValueError):
        naive_read_vcf(path, 0, 10, random.Random(0))


def test_naive_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        naive_read_vcf(tmp_path / "absent.vcf", 0, 10, random.Random(0))


def write_indexed(tmp_path, body, start=0):
    vcf = write_vcf(tmp_path, body)
    index = tmp_path / "data.index"
    index.write_text(f"{start}\t{len(HEADER.encode())}\n")
    return vcf, index


def test_guide_reads_from_offset(tmp_path):
    body = row(10, "0|1", "0|0") + row(20, "1|1", "0|1") + row(50, "0|1", "0|0")
    vcf, index = write_indexed(tmp_path, body)
    data = guide_read_vcf(vcf, index, 0, 50)
    assert data.num_samples == 4
    assert carriers(data, 10.0) == [1]
    assert carriers(data, 20.0) == [0, 1, 3]
    assert carriers(data, 50.0) == []
    assert data.valid_mutations == 2
    assert data.sequence_length == 50
    assert data.ordered_nodes == data.sample_nodes


def test_guide_duplicates_and_structural(tmp_path):
    body = row(10, "0|1", "0|0") + row(10, "1|0", "0|0")
    body += row(12, "0|1", "0|0", alt="TG") + row(14, "0|0", "1|0")
    vcf, index = write_indexed(tmp_path, body)
    data = guide_read_vcf(vcf, index, 0, 100)
    assert data.removed_mutations == 2
    assert carriers(data, 10.0) == []
    assert carriers(data, 14.0) == [2]


def test_guide_start_not_in_index(tmp_path):
    vcf, index = write_indexed(tmp_path, row(10, "0|1", "0|0"))
    with pytest.raises(ValueError):
        guide_read_vcf(vcf, index, 5, 100)


def test_guide_missing_index(tmp_path):
    vcf = write_vcf(tmp_path, row(10, "0|1", "0|0"))
    with pytest.raises(FileNotFoundError):
        guide_read_vcf(vcf, tmp_path / "absent.index", 0, 100)


def test_guide_sample_count_change_rejected(tmp_path):
    body = row(10, "0|1", "0|0") + "1\t11\t.\tA\tT\t.\tPASS\t.\tGT\t0|1\t0|0\t1|0\n"
    body += row(12, "0|1", "0|0")
    vcf, index = write_indexed(tmp_path, body)
    with pytest.raises(ValueError):
        guide_read_vcf(vcf, index, 0, 100)


def test_load_vcf_uses_index_when_present(tmp_path):
    write_indexed(tmp_path, row(10, "0|1", "0|0") + row(30, "0|0", "1|0"))
    data = load_vcf(str(tmp_path / "data"), 0, 30)
    assert isinstance(data, VariantData)
    assert carriers(data, 10.0) == [1]
    assert carriers(data, 30.0) == []
    assert data.ordered_nodes == data.sample_nodes


def test_load_vcf_falls_back_to_full_scan(tmp_path):
    write_vcf(tmp_path, row(10, "0|1", "0|0") + row(30, "0|0", "1|0"))
    data = load_vcf(str(tmp_path / "data"), 0, 30, random.Random(3))
    assert carriers(data, 10.0) == [1]
    assert carriers(data, 30.0) == [2]
    assert data.sequence_length == 30