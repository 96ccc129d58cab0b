"""Dump ingestion pipeline.

This module recovers object boundaries from concatenated JSON dumps,
decodes entities, and commits them to sinks in fixed-size batches.
"""
