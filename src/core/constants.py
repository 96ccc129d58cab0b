"""Core constants used across Stitch modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

DEFAULT_DATA_ROOT = Path(".stitch")
DATASETS_DIR_NAME = "datasets"
LANCE_DIR_NAME = "data.lance"
DEFAULT_BATCH_SIZE = 1000
DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_ENTITY_KIND = "movie"
DEFAULT_ID_KEY = "id"
DEFAULT_REFERENCE_ID = 0
DEFAULT_STRING_VALUE = ""
DEFAULT_NUMBER_VALUE = 0
DEFAULT_DATE_VALUE = date(1, 1, 1)
EMPTY_IMAGE_PATH = "/empty"
DEFAULT_LANGUAGE_CODE = "en"
STDIN_SOURCE_URI = "-"
DEFAULT_SURREAL_URL = "http://localhost:8000"
DEFAULT_SURREAL_NAMESPACE = "grooveguessr"
DEFAULT_SURREAL_DATABASE = "development"
DEFAULT_SURREAL_USERNAME = "root"
DEFAULT_SURREAL_PASSWORD = "root"
SURREAL_SQL_PATH = "/sql"
SURREAL_HTTP_TIMEOUT_SECONDS = 60.0
TMDB_API_BASE_URL = "https://api.themoviedb.org/3"
TMDB_LANGUAGE = "en-US"
TMDB_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_FETCH_WINDOW_SIZE = 40
DEFAULT_FETCH_WINDOW_DELAY_SECONDS = 1.0
SCHEMA_FILE_VERSION = 1
SUPPORTED_FIELD_TYPES = ("string", "number", "date", "reference", "reference_list", "count")
