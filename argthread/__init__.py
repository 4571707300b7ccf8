"""Parts for threading haplotypes into ancestral recombination graphs."""

__version__ = "0.1.0"

__all__ = [
    "rate_map",
    "recombination",
    "rsp_smc",
    "run_log",
    "vcf_reader",
    "transition",
    "hmm_math",
]