from tokenbridge_core import TokenQuery, TokenRepository
from tokenbridge_core.models import TokenStatus, TokenType

from tests.framework import make_tokens, w3c_primitives, w3c_semantics


def design_repo() -> TokenRepository:
    return TokenRepository(make_tokens({**w3c_primitives(), **w3c_semantics()}, project_id="web"))


def test_add_counts_new_changed_and_unchanged_tokens():
    repo = TokenRepository()
    first = repo.add(make_tokens({"a": {"$value": 1}, "b": {"$value": 2}}))
    assert (first.value.added, first.value.updated, first.value.skipped) == (2, 0, 0)
    created = repo.get_by_qualified_name("default", "b").created

    again = repo.add(make_tokens({"a": {"$value": 1}, "b": {"$value": 5}, "c": {"$value": 3}}))
    assert (again.value.added, again.value.updated, again.value.skipped) == (1, 1, 1)

    b = repo.get_by_qualified_name("default", "b")
    assert b.value == 5
    assert b.created == created
    assert [t.qualified_name for t in repo.all()] == ["a", "b", "c"]
    assert len(repo) == repo.count() == 3


def test_tokens_without_identity_are_skipped():
    token = make_tokens({"a": {"$value": 1}})[0]
    repo = TokenRepository()
    stats = repo.add([token.model_copy(update={"path": []})]).value
    assert stats.skipped == 1
    assert len(repo) == 0


def test_invalid_values_are_stored_as_drafts():
    tokens = make_tokens(
        {
            "brand": {"$value": "not-a-color", "$type": "color"},
            "ok": {"$value": "#fff", "$type": "color"},
        }
    )
    repo = TokenRepository(tokens)

    brand = repo.get_by_qualified_name("default", "brand")
    assert brand.status == TokenStatus.DRAFT
    assert brand.extensions["validationErrors"]
    assert repo.get_by_qualified_name("default", "ok").status == TokenStatus.ACTIVE
    assert repo.query(TokenQuery(status=TokenStatus.DRAFT)) == [brand]

    unchecked = TokenRepository(tokens, validate_values=False)
    assert unchecked.get_by_qualified_name("default", "brand").status == TokenStatus.ACTIVE


def test_lookups_and_queries():
    repo = design_repo()

    primary = repo.get_by_path("web", ["color", "primary"])
    assert primary is not None
    assert repo.get(primary.id) is primary
    assert repo.get_by_qualified_name("other", "color.primary") is None

    colors = repo.get_by_type(TokenType.COLOR)
    assert [t.qualified_name for t in colors] == ["color.primary", "color.secondary", "text.default", "text.muted"]
    assert len(repo.get_by_project("web")) == 6

    aliases = repo.query(TokenQuery(project_id="web", is_alias=True))
    assert [t.qualified_name for t in aliases] == ["text.default", "text.muted"]
    spacing = repo.query(TokenQuery(path_prefix=["spacing"]))
    assert [t.qualified_name for t in spacing] == ["spacing.sm", "spacing.md"]
    assert repo.query(TokenQuery(types=[TokenType.DIMENSION], qualified_name="spacing.md"))[0].value == "8px"
    assert len(repo.query()) == 6


def test_referencing_tokens_follow_aliases():
    repo = design_repo()
    primary = repo.get_by_qualified_name("web", "color.primary")
    assert [t.qualified_name for t in repo.get_referencing_tokens(primary.id)] == ["text.default"]


def test_update_keeps_identity_and_reindexes():
    repo = design_repo()
    sm = repo.get_by_qualified_name("web", "spacing.sm")

    updated = repo.update(sm.id, id="hijack", created="never", collection="layout", description="small gap")
    assert updated.ok
    assert updated.value.id == sm.id
    assert updated.value.created == sm.created
    assert updated.value.description == "small gap"
    assert repo.query(TokenQuery(collection="layout")) == [updated.value]

    missing = repo.update("nope", description="x")
    assert not missing.ok
    assert missing.context == "update"


def test_remove_and_clear():
    repo = design_repo()
    repo.add(make_tokens({"x": {"$value": 1}}, project_id="other"))

    primary = repo.get_by_qualified_name("web", "color.primary")
    assert repo.remove([primary.id, "unknown"]).value == 1
    assert repo.get(primary.id) is None
    assert repo.get_referencing_tokens(primary.id)[0].qualified_name == "text.default"

    assert repo.remove_project("web").value == 5
    assert [t.project_id for t in repo.all()] == ["other"]

    repo.clear()
    assert len(repo) == 0
    assert repo.get_by_project("other") == []


def test_stats_count_projects_types_and_cycles():
    repo = design_repo()
    repo.add(make_tokens({"a": {"$value": "{b}"}, "b": {"$value": "{a}"}}, project_id="loop"))

    stats = repo.stats()
    assert stats.total_tokens == 8
    assert stats.by_project == {"web": 6, "loop": 2}
    assert stats.by_type["color"] == 4
    assert stats.alias_count == 4
    assert stats.circular_reference_count == 1
