[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "argthread"
version = "0.1.0"
description = "Building blocks for threading haplotypes into ancestral recombination graphs: rate maps, recombination bookkeeping, breakpoint time choice, VCF reading, run logs and HMM transition math."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "ancestral recombination graph",
    "ARG",
    "population genetics",
    "coalescent",
    "sequentially Markov coalescent",
    "hidden Markov model",
    "VCF",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["argthread"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
