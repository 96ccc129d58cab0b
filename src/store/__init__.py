"""Batch destinations.

This module defines the sink contract and the store, statement,
database, array-file, and reference-fetch destinations.
"""
