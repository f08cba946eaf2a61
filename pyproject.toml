[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "calir"
version = "0.1.0"
description = "A small SSA intermediate representation with uniqued types and constants, a builder and a text parser"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "ir", "ssa", "parser", "intermediate-representation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Compilers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["calir"]

[tool.pytest.ini_options]
addopts = "-ra"
