[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xv6sim"
version = "0.1.0"
description = "Models of a small teaching Unix kernel: paging, a heap allocator, spin locks, syscall argument fetching, a shell parser and two user utilities"
requires-python = ">=3.10"
dependencies = []
keywords = ["operating-system", "kernel", "paging", "simulation", "shell", "teaching"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xv6-wc = "xv6sim.wc:main"
xv6-rm = "xv6sim.rm:main"

[tool.hatch.build.targets.wheel]
packages = ["xv6sim"]

[tool.pytest.ini_options]
addopts = "-ra"
