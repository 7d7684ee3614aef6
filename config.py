"""Configuration module for Book Quest."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Configuration
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4096"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Retry policy for the generation client
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "5"))
RETRY_BACKOFF_MULTIPLIER = 2

# Storage Configuration
STATE_DIR = Path(os.getenv("BOOK_QUEST_STATE_DIR", "./state/users"))

# Structure detection
TOC_SCAN_PAGES = 15
MIN_LINK_CHAPTERS = 3
MIN_TITLE_MATCHES = 2
MIN_TITLE_LENGTH = 5  # normalized titles must be longer than this
MIN_LLM_BOUNDARIES = 2
MIN_PAGES_FOR_SAMPLING = 10
SAMPLE_TARGET = 30
SAMPLE_CHARS = 500
FIXED_CHUNK_PAGES = 30
METADATA_PAGES = 5
DEFAULT_BOOK_TITLE = "Untitled Book"

# Chapter analysis
MAX_CHAPTER_CHARS = 80_000
CHAPTER_BATCH_SIZE = int(os.getenv("CHAPTER_BATCH_SIZE", "5"))
WORDS_PER_MINUTE = 250
MIN_READING_MINUTES = 5

# Plan editing
GAP_TEXT_CHARS = 12_000
GAP_MINUTES_PER_BOOK = 120

# Upload limits
MAX_UPLOAD_BYTES = 64 * 1024 * 1024
MAX_UPLOAD_FILES = 5
