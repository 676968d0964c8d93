[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blockfs"
version = "0.1.0"
description = "A small block-structured file system with a redo log, buffer cache, image builder and text tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "filesystem",
    "inode",
    "redo log",
    "buffer cache",
    "disk image",
    "grep",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
blockfs-mkfs = "blockfs.mkfs:main"
blockfs-grep = "blockfs.grep:main"
blockfs-tools = "blockfs.tools:main"

[tool.hatch.build.targets.wheel]
packages = ["blockfs"]

[tool.hatch.build.targets.sdist]
include = ["blockfs", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
