"""Second brain: ingest notes, search them semantically, and answer from them."""

__version__ = "0.1.0"
