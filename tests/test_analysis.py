import base64
import json

import httpx
import pytest

from photofolio.analysis import (
    SCENE_FALLBACK,
    AnalysisError,
    ExifOnlyAnalyzer,
    SceneAnalyzer,
    alt_text_fallback,
)

from .conftest import make_image


class FakeOllama:
    """Records chat requests and answers them from a per-model script."""

    def __init__(self, models=("llava:7b", "moondream"), answers=None):
        self.models = list(models)
        self.answers = answers or {}
        self.chats = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": m} for m in self.models]})
        body = json.loads(request.content)
        self.chats.append(body)
        answer = self.answers.get(body["model"], "A red square on a plain background")
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, int):
            return httpx.Response(answer, json={"error": "boom"})
        return httpx.Response(200, json={"message": {"role": "assistant", "content": answer}})


def _analyzer(service, **kwargs):
    client = httpx.Client(base_url="http://ollama.test", transport=httpx.MockTransport(service))
    return SceneAnalyzer(client=client, timeout=5, **kwargs)


@pytest.fixture
def image(tmp_path):
    return make_image(tmp_path / "red_square.jpg")


def test_initialize_keeps_available_primary():
    analyzer = _analyzer(FakeOllama())
    analyzer.initialize()
    assert analyzer.primary_model == "llava:7b"


def test_initialize_falls_back_when_primary_missing():
    analyzer = _analyzer(FakeOllama(models=["moondream"]))
    analyzer.initialize()
    assert analyzer.primary_model == "moondream"


def test_initialize_unreachable_service():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AnalysisError):
        _analyzer(refuse).initialize()


def test_describe_sends_image_and_prompt(image):
    service = FakeOllama(answers={"llava:7b": "  A red square  "})
    with _analyzer(service) as analyzer:
        assert analyzer.describe(image, "What is this?", "fallback") == "A red square"

    (chat,) = service.chats
    assert chat["model"] == "llava:7b"
    assert chat["stream"] is False
    message = chat["messages"][0]
    assert message["content"] == "What is this?"
    assert base64.b64decode(message["images"][0]) == image.read_bytes()


def test_describe_retries_with_fallback_model(image):
    service = FakeOllama(answers={"llava:7b": 500, "moondream": "Red square"})
    analyzer = _analyzer(service)
    assert analyzer.describe(image, "prompt", "fallback") == "Red square"
    assert [c["model"] for c in service.chats] == ["llava:7b", "moondream"]


def test_describe_empty_answers_give_fallback(image):
    service = FakeOllama(answers={"llava:7b": "", "moondream": " "})
    analyzer = _analyzer(service)
    assert analyzer.describe(image, "prompt", "fallback") == "fallback"
    assert len(service.chats) == 2


def test_describe_timeout_gives_fallback_without_retry(image):
    service = FakeOllama(answers={"llava:7b": httpx.ReadTimeout("slow")})
    analyzer = _analyzer(service)
    assert analyzer.describe(image, "prompt", "fallback") == "fallback"
    assert len(service.chats) == 1


def test_unreadable_image_gives_fallback(tmp_path):
    service = FakeOllama()
    analyzer = _analyzer(service)
    assert analyzer.describe(tmp_path / "missing.jpg", "prompt", "fallback") == "fallback"
    assert service.chats == []


def test_results_are_cached(image, tmp_path):
    service = FakeOllama()
    cache_dir = tmp_path / "cache"
    analyzer = _analyzer(service, cache_dir=cache_dir)

    first = analyzer.alt_text(image)
    second = analyzer.alt_text(image)

    assert first == second == "A red square on a plain background"
    assert len(service.chats) == 1
    entry = json.loads((cache_dir / f"{image.parent.name}_red_square.jpg_alttext.json").read_text())
    assert entry["result"] == first


def test_cache_separates_albums_with_same_filename(tmp_path):
    field = make_image(tmp_path / "nature" / "IMG_0001.jpg", color="green")
    street = make_image(tmp_path / "street" / "IMG_0001.jpg", color="grey")
    service = FakeOllama()
    analyzer = _analyzer(service, cache_dir=tmp_path / "cache")

    service.answers = {"llava:7b": "A green field"}
    assert analyzer.alt_text(field) == "A green field"
    service.answers = {"llava:7b": "A grey street"}
    assert analyzer.alt_text(street) == "A grey street"
    assert analyzer.alt_text(field) == "A green field"
    assert len(service.chats) == 2


def test_fallbacks_are_not_cached(image, tmp_path):
    service = FakeOllama(answers={"llava:7b": 500, "moondream": 500})
    cache_dir = tmp_path / "cache"
    analyzer = _analyzer(service, cache_dir=cache_dir)

    assert analyzer.scene_analysis(image) == SCENE_FALLBACK
    assert analyzer.alt_text(image) == alt_text_fallback(image) == "Photo: red_square"
    assert not cache_dir.exists()


def test_analyze_bundles_exif_and_descriptions(image):
    analyzer = _analyzer(FakeOllama())
    result = analyzer.analyze(image)

    assert result["accessibility"]["altText"] == "A red square on a plain background"
    assert result["technical"]["sceneAnalysis"] == "A red square on a plain background"
    assert result["technical"]["exif"]["image"]["width"] == 64
    assert result["analysis"]["model"] == "llava:7b"


def test_exif_only_analyzer(image):
    result = ExifOnlyAnalyzer().analyze(image)
    assert result["accessibility"]["altText"] is None
    assert result["technical"]["sceneAnalysis"] is None
    assert result["technical"]["exif"]["file"]["format"] == "JPEG"
