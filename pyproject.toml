[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "netflowpp"
version = "0.1.0"
description = "Packet parsing and software switching building blocks: ACLs, classification, FDB, VLANs, routing and STP state."
requires-python = ">=3.10"
dependencies = []
keywords = ["networking", "ethernet", "vlan", "switch", "packet", "acl", "stp", "routing"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["netflowpp"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
