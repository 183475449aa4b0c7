[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dotrelay"
version = "0.1.0"
description = "Relay-chain building blocks: parachain primitives, collator and consensus networking state, and Ethereum-address claims"
requires-python = ">=3.10"
keywords = ["relay-chain", "parachain", "collator", "consensus", "blockchain", "secp256k1"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["dotrelay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
