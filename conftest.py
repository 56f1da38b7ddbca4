"""Global pytest configuration."""

import os

# Keep tests offline and in-process before any settings are read
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("OPENAI_API_KEY", "")
