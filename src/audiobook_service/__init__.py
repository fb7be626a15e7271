"""Audiobook concatenation and document chunking service."""
