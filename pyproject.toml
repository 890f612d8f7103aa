[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "segmem"
version = "0.1.0"
description = "Segmented memory server and the binary message protocol of a small teaching operating system"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "segmentation",
    "memory",
    "compaction",
    "first-fit",
    "best-fit",
    "worst-fit",
    "protocol",
    "operating-system",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
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
segmem = "segmem.app:main"

[tool.hatch.build.targets.wheel]
packages = ["segmem"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
