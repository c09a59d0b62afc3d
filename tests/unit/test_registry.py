import pytest

from tokenbridge_core.errors import DuplicateFormatError
from tokenbridge_core.formats import FormatInfo, FormatStrategy
from tokenbridge_core.registry import FormatRegistry, default_registry
from tokenbridge_core.style_dictionary import StyleDictionaryFormatStrategy
from tokenbridge_core.w3c import W3CFormatStrategy

from tests.framework import sd_document, w3c_primitives


class FixedScore(FormatStrategy):
    marker = "$value"

    def __init__(self, name: str, score: float):
        self.info = FormatInfo(name=name)
        self.score = score

    def detect(self, document):
        return self.score

    def extract_type(self, node, path):
        return "string"


def mixed_document(w3c_leaves: int, sd_leaves: int) -> dict:
    doc = {}
    for i in range(w3c_leaves):
        doc[f"w{i}"] = {"$value": i}
    for i in range(sd_leaves):
        doc[f"s{i}"] = {"value": i}
    return doc


def test_register_rejects_duplicate_names():
    reg = FormatRegistry()
    reg.register(W3CFormatStrategy())
    with pytest.raises(DuplicateFormatError):
        reg.register(W3CFormatStrategy())


def test_clear_allows_re_registration():
    reg = default_registry()
    assert reg.count() == 2
    reg.clear()
    assert reg.count() == 0
    reg.register(W3CFormatStrategy())
    assert reg.list() == ["W3C Design Tokens"]


def test_get_and_has():
    reg = default_registry()
    assert reg.has("Style Dictionary")
    assert isinstance(reg.get("Style Dictionary"), StyleDictionaryFormatStrategy)
    assert reg.get("Figma") is None
    assert not reg.has("Figma")


def test_detects_pure_documents():
    reg = default_registry()
    assert reg.detect_format(w3c_primitives()).info.name == "W3C Design Tokens"
    assert reg.detect_format(sd_document()).info.name == "Style Dictionary"


@pytest.mark.parametrize("m,n", [(3, 10), (7, 10), (1, 4), (0, 5), (5, 5)])
def test_mixed_document_scores_split_by_marker(m, n):
    doc = mixed_document(m, n - m)
    scores = default_registry().scores(doc)
    assert scores["W3C Design Tokens"] == pytest.approx(m / n)
    assert scores["Style Dictionary"] == pytest.approx((n - m) / n)


def test_mixed_document_larger_share_wins():
    reg = default_registry()
    assert reg.detect_format(mixed_document(7, 3)).info.name == "W3C Design Tokens"
    assert reg.detect_format(mixed_document(3, 7)).info.name == "Style Dictionary"


def test_tie_goes_to_first_registered():
    reg = default_registry()
    assert reg.detect_format(mixed_document(2, 2)).info.name == "W3C Design Tokens"

    reversed_reg = FormatRegistry()
    reversed_reg.register(StyleDictionaryFormatStrategy())
    reversed_reg.register(W3CFormatStrategy())
    assert reversed_reg.detect_format(mixed_document(2, 2)).info.name == "Style Dictionary"


def test_zero_scores_and_empty_registry_detect_nothing():
    assert default_registry().detect_format({"plain": {"nothing": 1}}) is None
    assert default_registry().detect_format({}) is None
    assert FormatRegistry().detect_format(w3c_primitives()) is None


def test_highest_custom_score_wins():
    reg = FormatRegistry()
    reg.register(FixedScore("low", 0.2))
    reg.register(FixedScore("high", 0.9))
    reg.register(FixedScore("also-high", 0.9))
    assert reg.detect_format({}).info.name == "high"
