"""Runtime configuration for photofolio.

Values are read with python-decouple, so they can be set in the environment
or in a ``.env`` / ``settings.ini`` file next to the working directory.
"""

from pathlib import Path

from decouple import config

# Project root containing data/albums.json and assets/images/
PORTFOLIO_ROOT = Path(config("PORTFOLIO_ROOT", default=".")).expanduser()

# Scene/accessibility analysis service (Ollama-compatible HTTP API)
OLLAMA_HOST = config("OLLAMA_HOST", default="http://127.0.0.1:11434")
OLLAMA_PRIMARY_MODEL = config("OLLAMA_PRIMARY_MODEL", default="llava:7b")
OLLAMA_FALLBACK_MODEL = config("OLLAMA_FALLBACK_MODEL", default="moondream")
ANALYSIS_TIMEOUT = config("ANALYSIS_TIMEOUT", default=30.0, cast=float)
ANALYSIS_CACHE = config("ANALYSIS_CACHE", default=True, cast=bool)

# Number of photos processed at the same time during import
IMPORT_CONCURRENCY = config("IMPORT_CONCURRENCY", default=3, cast=int)
