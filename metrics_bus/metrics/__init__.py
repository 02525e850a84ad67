"""Parsing, delta and aggregation logic of the metrics bus."""
