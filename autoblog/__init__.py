"""Autoblog: LLM blog drafting and WordPress publishing on a two-queue job pipeline."""

__version__ = "0.1.0"
