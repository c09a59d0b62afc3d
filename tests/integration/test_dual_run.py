from __future__ import annotations

from rich.console import Console

from tokenbridge_core.config import CutoverFlags
from tokenbridge_core.errors import RollbackError
from tokenbridge_core.models import ImportStats
from tokenbridge_store import (
    DualRunValidator,
    InMemoryTargetSystem,
    StateRecord,
    compare_states,
    import_documents_legacy,
    render_comparison,
    sync_tokens,
)

from tests.framework import make_tokens, run, w3c_primitives, w3c_semantics


def rec(identity, value, type_="STRING"):
    return StateRecord(identity=identity, type=type_, value=value)


def existing_target() -> InMemoryTargetSystem:
    return InMemoryTargetSystem([rec("legacy/keep", "x"), rec("color/primary", "#000000", "COLOR")])


async def legacy_pipeline(target, payload):
    return await import_documents_legacy(target, [("default", payload)])


async def candidate_pipeline(target, payload):
    return await sync_tokens(target, make_tokens(payload))


def writes(records):
    async def pipeline(target, payload):
        for r in records:
            await target.upsert(r)
        return ImportStats(added=len(records))

    return pipeline


def test_compare_states_counts_every_kind_of_difference():
    a = [rec("same", 1), rec("changed", 1), rec("retyped", 1, "FLOAT"), rec("gone", 1)]
    b = [rec("same", 1), rec("changed", 2), rec("retyped", 1, "STRING"), rec("new", 1)]
    result = compare_states(a, b, threshold=0.5)

    assert result.only_in_legacy == ["gone"]
    assert result.only_in_candidate == ["new"]
    assert [m.identity for m in result.value_mismatches] == ["changed"]
    assert [m.identity for m in result.type_mismatches] == ["retyped"]
    assert result.total == 4
    assert result.discrepancy_rate == 1.0
    assert not result.identical
    assert result.exceeds_threshold


def test_compare_states_deep_equality_ignores_key_order():
    a = [rec("shadow", {"x": 1, "blur": 2})]
    b = [rec("shadow", {"blur": 2, "x": 1})]
    result = compare_states(a, b)
    assert result.identical
    assert result.discrepancy_rate == 0.0


def test_compare_empty_states():
    result = compare_states([], [])
    assert result.identical
    assert result.total == 0
    assert result.discrepancy_rate == 0.0


def test_validate_leaves_target_unchanged_when_pipelines_agree():
    target = existing_target()
    before = run(target.capture())
    payload = {**w3c_primitives(), **w3c_semantics()}

    result = run(DualRunValidator(target, legacy_pipeline, candidate_pipeline).validate(payload))
    assert result.ok, result.message
    assert result.value.identical
    assert result.value.total == 7
    assert run(target.capture()) == before


def test_validate_leaves_target_unchanged_when_pipelines_disagree():
    target = existing_target()
    before = run(target.capture())
    legacy = writes([rec("a", 1), rec("color/primary", "#111111", "COLOR")])
    candidate = writes([rec("a", 2), rec("b", 1)])

    result = run(DualRunValidator(target, legacy, candidate).validate(None))
    assert result.ok
    assert not result.value.identical
    assert run(target.capture()) == before


def test_validate_rolls_back_when_a_pipeline_raises():
    target = existing_target()
    before = run(target.capture())

    async def explode(t, payload):
        await t.upsert(rec("half/written", 1))
        raise RuntimeError("pipeline crashed")

    result = run(DualRunValidator(target, legacy_pipeline, explode).validate(w3c_primitives()))
    assert not result.ok
    assert "pipeline crashed" in result.error
    assert run(target.capture()) == before


class StickyTarget(InMemoryTargetSystem):
    """Refuses to delete one record, so rollback cannot complete."""

    async def remove(self, identity):
        if identity != "sticky":
            await super().remove(identity)


def test_rollback_is_verified():
    target = StickyTarget()
    result = run(DualRunValidator(target, writes([rec("sticky", 1)]), writes([])).validate(None))
    assert not result.ok
    assert result.context == "rollback"

    validator = DualRunValidator(StickyTarget([rec("sticky", 0)]), writes([]), writes([]))
    try:
        run(validator.rollback([]))
    except RollbackError as e:
        assert "sticky" in str(e)
    else:
        raise AssertionError("rollback should have failed")


def test_cutover_keeps_legacy_by_default():
    target = InMemoryTargetSystem()
    validator = DualRunValidator(target, writes([rec("a", 1)]), writes([rec("a", 1)]))
    decision = run(validator.import_with_validation(None)).value
    assert decision.pipeline == "legacy"
    assert decision.comparison.identical
    assert decision.reason == "new model not enabled"
    assert run(target.capture()) == [rec("a", 1)]


def test_cutover_uses_candidate_when_opted_in_and_within_threshold():
    flags = CutoverFlags(use_new_model=True, discrepancy_threshold=0.05)
    validator = DualRunValidator(InMemoryTargetSystem(), writes([rec("a", 1)]), writes([rec("a", 1)]), flags)
    decision = run(validator.import_with_validation(None)).value
    assert decision.pipeline == "candidate"


def test_cutover_refuses_candidate_above_threshold():
    flags = CutoverFlags(use_new_model=True, discrepancy_threshold=0.05)
    validator = DualRunValidator(InMemoryTargetSystem(), writes([rec("a", 1)]), writes([rec("a", 2)]), flags)
    decision = run(validator.import_with_validation(None)).value
    assert decision.pipeline == "legacy"
    assert decision.comparison.exceeds_threshold
    assert decision.reason == "discrepancy at or above threshold"


def test_rate_equal_to_threshold_is_reported_and_decided_the_same_way():
    legacy_records = [rec("a", 1), rec("b", 1)]
    candidate_records = [rec("a", 1), rec("b", 2)]

    result = compare_states(legacy_records, candidate_records, threshold=0.5)
    assert result.discrepancy_rate == 0.5
    assert result.exceeds_threshold
    assert not result.within_threshold

    flags = CutoverFlags(use_new_model=True, discrepancy_threshold=0.5)
    validator = DualRunValidator(InMemoryTargetSystem(), writes(legacy_records), writes(candidate_records), flags)
    decision = run(validator.import_with_validation(None)).value
    assert decision.pipeline == "legacy"
    assert decision.comparison.exceeds_threshold


def test_identical_states_are_within_a_zero_threshold():
    result = compare_states([rec("a", 1)], [rec("a", 1)], threshold=0.0)
    assert result.within_threshold
    assert not result.exceeds_threshold


def test_cutover_without_dual_run_follows_switch():
    legacy, candidate = writes([rec("old", 1)]), writes([rec("new", 1)])

    target = InMemoryTargetSystem()
    flags = CutoverFlags(enable_dual_run=False)
    decision = run(DualRunValidator(target, legacy, candidate, flags).import_with_validation(None)).value
    assert decision.pipeline == "legacy"
    assert decision.comparison is None
    assert [r.identity for r in run(target.capture())] == ["old"]

    target = InMemoryTargetSystem()
    flags = CutoverFlags(enable_dual_run=False, use_new_model=True)
    decision = run(DualRunValidator(target, legacy, candidate, flags).import_with_validation(None)).value
    assert decision.pipeline == "candidate"
    assert [r.identity for r in run(target.capture())] == ["new"]


def test_sync_tokens_stats_and_alias_records():
    target = InMemoryTargetSystem()
    tokens = make_tokens({**w3c_primitives(), **w3c_semantics()})
    stats = run(sync_tokens(target, tokens))
    assert (stats.added, stats.updated, stats.skipped) == (6, 0, 0)

    records = {r.identity: r for r in run(target.capture())}
    assert records["text/default"].value == {"type": "VARIABLE_ALIAS", "id": "color/primary"}
    assert records["color/primary"].type == "COLOR"
    assert records["spacing/sm"].type == "FLOAT"

    again = run(sync_tokens(target, tokens))
    assert (again.added, again.updated, again.skipped) == (0, 0, 6)


def test_legacy_import_keeps_every_document_of_a_shared_collection():
    target = InMemoryTargetSystem()
    documents = [
        ("semantic", {"a": {"$value": "#fff", "$type": "color"}}),
        ("semantic", {"c": {"$value": 4, "$type": "number"}}),
    ]
    stats = run(import_documents_legacy(target, documents))
    assert stats.added == 2
    records = run(target.capture())
    assert [(r.identity, r.collection) for r in records] == [("a", "semantic"), ("c", "semantic")]


def test_render_comparison_prints_differences():
    console = Console(record=True, width=120)
    result = compare_states([rec("a", 1), rec("gone", 1)], [rec("a", 2), rec("new", 1)])
    render_comparison(result, console)
    text = console.export_text()
    assert "Dual-run comparison" in text
    assert "gone" in text
    assert "new" in text
    assert "Value mismatches" in text
