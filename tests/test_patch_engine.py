"""
Unit Tests for PatchEngine

Tests for:
- innerText, attribute set/remove and reorder patches
- Target lookup order
- Skipped patches and the applied/total report
- Idempotence of replay
"""

import pytest
from hypothesis import given, strategies as st, settings
from pydantic import ValidationError

from template_engine.document import SvgDocument
from template_engine.errors import MalformedDocumentError
from template_engine.identity import ensure_identities
from template_engine.patch_engine import PatchEngine, replay_patches
from template_engine.schemas import Patch, ReorderTarget

from conftest import LAYERED_SVG, element_by_id


PATCHES = [
    {"id": "Label", "attribute": "innerText", "value": "World"},
    {"id": "C", "attribute": "reorder", "value": {"before_id": "A"}},
    {"id": "A", "attribute": "reorder", "value": {"after_id": "Label"}},
    {"id": "missing", "attribute": "fill", "value": "red"},
    {"id": "el-rect_2", "attribute": "fill", "value": "red"},
    {"id": "A", "attribute": "width", "value": None},
    {"attribute": "fill"},
]


def identified(markup: str) -> SvgDocument:
    document = SvgDocument.parse(markup)
    ensure_identities(document)
    return document


def layer_ids(document: SvgDocument):
    layer = element_by_id(document, "layer")
    return [document.get(h, "id") for h in document.children(layer)]


class TestPatchModel:
    """Tests for the Patch schema"""

    def test_reorder_value_accepts_both_spellings(self):
        snake = Patch.model_validate({"id": "x", "attribute": "reorder", "value": {"after_id": "y"}})
        camel = Patch.model_validate({"id": "x", "attribute": "reorder", "value": {"beforeId": "z"}})

        assert snake.is_reorder
        assert snake.value == ReorderTarget(after_id="y")
        assert camel.value.beforeId == "z"

    def test_scalar_values(self):
        assert Patch(id="x", attribute="opacity", value="0.5").value == "0.5"
        assert Patch(id="x", attribute="innerText", value="Hi").is_text

    def test_patches_are_immutable(self):
        patch = Patch(id="x", attribute="fill", value="red")

        with pytest.raises(ValidationError):
            patch.id = "y"


class TestApply:
    """Tests for PatchEngine.apply"""

    def test_report_counts(self):
        document = identified(LAYERED_SVG)

        report = PatchEngine().apply(document, PATCHES)

        assert report.total == 7
        assert report.applied == 4
        assert report.skipped == [2, 3, 6]
        assert report.skipped_count == 3
        assert not report.complete
        assert str(report) == "4/7"

    def test_patch_effects(self):
        document = identified(LAYERED_SVG)

        PatchEngine().apply(document, PATCHES)

        assert document.text(element_by_id(document, "Label")) == "World"
        assert layer_ids(document) == ["C", "A", "B"]
        assert not document.has(element_by_id(document, "A"), "width")
        plain = [h for h in document.handles() if document.get(h, "class") == "plain"]
        assert document.get(plain[0], "fill") is None
        assert document.get(plain[1], "fill") == "red"

    def test_before_wins_over_after(self):
        document = identified(LAYERED_SVG)

        report = PatchEngine().apply(document, [
            {"id": "B", "attribute": "reorder", "value": {"after_id": "C", "before_id": "A"}},
        ])

        assert report.applied == 1
        assert layer_ids(document) == ["B", "A", "C"]

    def test_after_used_when_before_unresolvable(self):
        document = identified(LAYERED_SVG)

        PatchEngine().apply(document, [
            {"id": "A", "attribute": "reorder", "value": {"after_id": "C", "before_id": "nope"}},
        ])

        assert layer_ids(document) == ["B", "C", "A"]

    def test_reorder_without_target_is_skipped(self):
        document = identified(LAYERED_SVG)

        report = PatchEngine().apply(document, [
            {"id": "A", "attribute": "reorder", "value": "C"},
            {"id": "A", "attribute": "reorder", "value": {"after_id": "A"}},
        ])

        assert report.applied == 0
        assert layer_ids(document) == ["A", "B", "C"]

    def test_empty_value_removes_attribute(self):
        document = identified(LAYERED_SVG)

        PatchEngine().apply(document, [{"id": "A", "attribute": "height", "value": ""}])

        assert not document.has(element_by_id(document, "A"), "height")

    def test_numeric_and_namespaced_values(self):
        document = identified('<svg xmlns="http://www.w3.org/2000/svg"><image id="I"/></svg>')

        PatchEngine().apply(document, [
            {"id": "I", "attribute": "width", "value": 120.0},
            {"id": "I", "attribute": "xlink:href", "value": "data:image/png;base64,AA=="},
        ])

        handle = element_by_id(document, "I")
        assert document.get(handle, "width") == "120"
        assert document.get(handle, "xlink:href") == "data:image/png;base64,AA=="

    def test_lookup_falls_back_to_alternate_attributes(self):
        document = identified('<svg><text name="greeting">a</text><text data-name="other">b</text></svg>')

        report = PatchEngine().apply(document, [
            {"id": "greeting", "attribute": "innerText", "value": "hi"},
            {"id": "other", "attribute": "innerText", "value": "there"},
        ])

        assert report.complete
        assert document.find("greeting", ["name"]) is not None
        assert document.text(document.find("greeting", ["name"])) == "hi"
        assert document.text(document.find("other", ["data-name"])) == "there"

    def test_identity_lookup_reaches_duplicate_ids(self):
        document = identified('<svg><text id="X">1</text><text id="X">2</text></svg>')

        PatchEngine().apply(document, [{"id": "X_2", "attribute": "innerText", "value": "two"}])

        texts = [document.text(h) for h in document.handles() if document.get(h, "id") == "X"]
        assert texts == ["1", "two"]

    def test_accepts_patch_models(self):
        document = identified(LAYERED_SVG)

        report = PatchEngine().apply(document, [
            Patch(id="Label", attribute="innerText", value="Model"),
        ])

        assert report.complete
        assert document.text(element_by_id(document, "Label")) == "Model"


class TestReplay:
    """Tests for PatchEngine.replay"""

    def test_replay_returns_markup_and_report(self):
        text, report = PatchEngine().replay(LAYERED_SVG, PATCHES)

        assert "World" in text
        assert 'data-internal-id="el-rect_2"' in text
        assert str(report) == "4/7"

    def test_replay_malformed_base(self):
        with pytest.raises(MalformedDocumentError):
            PatchEngine().replay("<svg", PATCHES)

    def test_replay_is_repeatable(self):
        first, _ = replay_patches(LAYERED_SVG, PATCHES)
        second, _ = replay_patches(LAYERED_SVG, PATCHES)

        assert first == second

    def test_applying_twice_equals_applying_once(self):
        document = identified(LAYERED_SVG)
        engine = PatchEngine()

        engine.apply(document, PATCHES)
        once = document.serialize()
        engine.apply(document, PATCHES)

        assert document.serialize() == once

    @given(
        patches=st.lists(
            st.fixed_dictionaries({
                "id": st.sampled_from(["A", "B", "C", "Label", "zzz"]),
                "attribute": st.sampled_from(["fill", "innerText", "opacity"]),
                "value": st.one_of(st.none(), st.sampled_from(["red", "", "0.5", "text"])),
            }),
            max_size=10,
        ),
        reorder=st.one_of(
            st.none(),
            st.fixed_dictionaries({
                "id": st.sampled_from(["A", "B", "C"]),
                "attribute": st.just("reorder"),
                "value": st.one_of(
                    st.fixed_dictionaries({"before_id": st.sampled_from(["A", "B", "C"])}),
                    st.fixed_dictionaries({"after_id": st.sampled_from(["A", "B", "C"])}),
                ),
            }),
        ),
    )
    @settings(max_examples=50)
    def test_idempotence_property(self, patches, reorder):
        """Property: applying a patch list twice equals applying it once"""
        if reorder is not None:
            patches = patches + [reorder]
        document = identified(LAYERED_SVG)
        engine = PatchEngine()

        first = engine.apply(document, patches)
        once = document.serialize()
        second = engine.apply(document, patches)

        assert document.serialize() == once
        assert first.total == second.total == len(patches)
