"""A block-structured file system with a redo log, buffer cache, image builder and text tools."""

__version__ = "0.1.0"