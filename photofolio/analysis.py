"""Scene and accessibility analysis through a local vision model.

The analyzer talks to an Ollama-compatible HTTP API. Every request has a
bounded wait; when the service is slow, missing or returns garbage the
analyzer answers with a fixed fallback string so that a batch never stops
because of it.
"""

import base64
import io
import json
from datetime import datetime, timezone
from logging import Logger
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx
from PIL import Image, ImageOps

from . import config
from .backends import open_image
from .convert import ANALYSIS
from .exif import extract_exif, technical_summary
from .log import get_logger

LOGGER = get_logger(__name__)

ALT_TEXT_PROMPT = (
    "Describe this image in one concise sentence for accessibility purposes. "
    "Focus on the main subject, setting, and important visual elements. "
    "Keep it under 125 characters and make it suitable for screen readers. "
    'Do not start with "This is" or "The image shows".'
)

SCENE_PROMPT = (
    "Analyze this photograph's technical and compositional aspects. Describe: "
    "lighting conditions (natural/artificial, quality, direction), composition "
    "(rule of thirds, symmetry, etc.), depth of field, camera angle/perspective, "
    "and overall mood/atmosphere. Be concise and technical, focusing on "
    "photographic elements rather than just subject matter."
)

SCENE_FALLBACK = "AI analysis temporarily unavailable"

# Sources above this size are downscaled before upload
MAX_UPLOAD_BYTES = 2 * 1024 * 1024


class AnalysisError(Exception):
    """The analysis service could not be reached or gave no answer."""


def alt_text_fallback(image_path: Union[str, Path]) -> str:
    return f"Photo: {Path(image_path).stem}"


class SceneAnalyzer:
    """Client for the vision model behind alt text and scene descriptions."""

    def __init__(
        self,
        host: str = config.OLLAMA_HOST,
        primary_model: str = config.OLLAMA_PRIMARY_MODEL,
        fallback_model: str = config.OLLAMA_FALLBACK_MODEL,
        timeout: float = config.ANALYSIS_TIMEOUT,
        cache_dir: Optional[Path] = None,
        client: Optional[httpx.Client] = None,
        logger: Logger = LOGGER,
    ):
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.timeout = timeout
        self.cache_dir = cache_dir
        self.logger = logger
        self._client = client or httpx.Client(base_url=host, timeout=timeout)

    def initialize(self) -> None:
        """Check the service is up and pick the model to use.

        Raises:
            AnalysisError: If the service cannot be reached
        """
        try:
            response = self._client.get("/api/tags", timeout=self.timeout)
            response.raise_for_status()
            models = [m.get("name") for m in response.json().get("models", [])]
        except (httpx.HTTPError, ValueError) as exc:
            raise AnalysisError(f"Failed to connect to analysis service: {exc}") from exc

        self.logger.info("Available AI models: %s", ", ".join(models) or "none")
        if self.primary_model not in models:
            self.logger.warning(
                "Primary model %s not found, using %s",
                self.primary_model,
                self.fallback_model,
            )
            self.primary_model = self.fallback_model

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SceneAnalyzer":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _encode_image(self, image_path: Path) -> str:
        if image_path.stat().st_size <= MAX_UPLOAD_BYTES:
            return base64.b64encode(image_path.read_bytes()).decode("ascii")

        self.logger.debug("Downscaling %s for analysis", image_path.name)
        with open_image(image_path) as opened:
            image = ImageOps.exif_transpose(opened).convert("RGB")
            image.thumbnail(
                (ANALYSIS.max_width, ANALYSIS.max_width), Image.Resampling.LANCZOS
            )
            buffer = io.BytesIO()
            image.save(buffer, format=ANALYSIS.format, quality=ANALYSIS.quality)
        return base64.b64encode(buffer.getvalue()).decode("ascii")

    def _chat(self, image_b64: str, prompt: str, model: str) -> str:
        response = self._client.post(
            "/api/chat",
            json={
                "model": model,
                "stream": False,
                "messages": [{"role": "user", "content": prompt, "images": [image_b64]}],
                "options": {"temperature": 0.3},
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        content = (response.json().get("message") or {}).get("content", "").strip()
        if not content:
            raise AnalysisError(f"Empty answer from {model}")
        return content

    def describe(
        self, image_path: Union[str, Path], prompt: str, fallback: str
    ) -> str:
        """Ask the model about an image; never raises for service failures.

        The fallback model is tried once when the primary one fails for a
        reason other than a timeout.
        """
        image_path = Path(image_path)
        try:
            image_b64 = self._encode_image(image_path)
        except OSError as exc:
            self.logger.warning("Cannot read %s for analysis: %s", image_path, exc)
            return fallback

        model = self.primary_model
        while True:
            self.logger.debug("Analyzing %s with %s", image_path.name, model)
            try:
                return self._chat(image_b64, prompt, model)
            except httpx.TimeoutException:
                self.logger.warning("Analysis of %s timed out with %s", image_path.name, model)
                return fallback
            except (httpx.HTTPError, AnalysisError, ValueError) as exc:
                self.logger.warning("Analysis failed with %s: %s", model, exc)
                if model == self.fallback_model:
                    return fallback
                model = self.fallback_model

    def _cache_file(self, image_path: Path, kind: str) -> Optional[Path]:
        if self.cache_dir is None:
            return None
        # Camera filenames repeat across albums
        return self.cache_dir / f"{image_path.parent.name}_{image_path.name}_{kind}.json"

    def _cached(self, image_path: Path, kind: str) -> Optional[str]:
        cache_file = self._cache_file(image_path, kind)
        if cache_file is None or not cache_file.is_file():
            return None
        try:
            entry = json.loads(cache_file.read_text(encoding="utf-8"))
            stamp = datetime.fromisoformat(entry["timestamp"])
        except (OSError, ValueError, KeyError, TypeError):
            return None
        modified = datetime.fromtimestamp(image_path.stat().st_mtime, tz=timezone.utc)
        if stamp < modified:
            return None
        return entry.get("result")

    def _store(self, image_path: Path, kind: str, result: str) -> None:
        cache_file = self._cache_file(image_path, kind)
        if cache_file is None:
            return
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "imagePath": str(image_path),
            "analysisType": kind,
            "result": result,
        }
        try:
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            cache_file.write_text(json.dumps(entry, indent=2), encoding="utf-8")
        except OSError as exc:
            self.logger.warning("Could not save analysis cache %s: %s", cache_file, exc)

    def _cached_describe(self, image_path: Path, kind: str, prompt: str, fallback: str) -> str:
        cached = self._cached(image_path, kind)
        if cached:
            return cached
        result = self.describe(image_path, prompt, fallback)
        if result != fallback:
            self._store(image_path, kind, result)
        return result

    def alt_text(self, image_path: Union[str, Path]) -> str:
        image_path = Path(image_path)
        return self._cached_describe(
            image_path, "alttext", ALT_TEXT_PROMPT, alt_text_fallback(image_path)
        )

    def scene_analysis(self, image_path: Union[str, Path]) -> str:
        return self._cached_describe(Path(image_path), "scene", SCENE_PROMPT, SCENE_FALLBACK)

    def analyze(self, image_path: Union[str, Path]) -> Dict[str, Any]:
        """Full analysis of one source photo: EXIF plus model descriptions."""
        exif = extract_exif(image_path)
        return {
            "accessibility": {"altText": self.alt_text(image_path)},
            "technical": {
                "exif": exif,
                "sceneAnalysis": self.scene_analysis(image_path),
                "summary": technical_summary(exif),
            },
            "analysis": {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "model": self.primary_model,
            },
        }


class ExifOnlyAnalyzer:
    """Stand-in used when AI analysis is disabled or unavailable."""

    primary_model = None

    def analyze(self, image_path: Union[str, Path]) -> Dict[str, Any]:
        exif = extract_exif(image_path)
        return {
            "accessibility": {"altText": None},
            "technical": {
                "exif": exif,
                "sceneAnalysis": None,
                "summary": technical_summary(exif),
            },
            "analysis": None,
        }

    def close(self) -> None:
        pass
