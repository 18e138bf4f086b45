"""Media tooling for the ingest pipeline: process runner, probe, remux, keys, scratch files."""
