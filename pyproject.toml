[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pebblekit"
version = "0.1.0"
description = "Pure-Python models of kernel building blocks: ELF parsing, x86_64 addresses, paging, descriptor tables and bitmap utilities"
requires-python = ">=3.10"
dependencies = []
keywords = ["elf", "x86_64", "paging", "gdt", "idt", "cpuid", "kernel", "bitmap", "operating-system"]
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
    "Topic :: System :: Operating System Kernels",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pebblekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
