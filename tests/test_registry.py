"""注册表与冲突检测测试"""

from pathlib import Path

import pytest

from skillsync.errors import ErrorType, TriggerConflictError
from skillsync.skills import ConflictPolicy, SkillMetadata, build_registry


def _skill(skill_id: str, triggers=(), scope=("root",), source: str | None = None) -> SkillMetadata:
    return SkillMetadata(
        id=skill_id,
        display_name=skill_id,
        description=f"{skill_id} guide.",
        triggers=tuple(triggers),
        scope=frozenset(scope),
        source=Path(source) if source else None,
    )


class TestBuild:
    def test_claims_sorted_case_insensitively(self):
        registry = build_registry([
            _skill("b", ["zeta"]),
            _skill("a", ["Alpha", "beta"]),
        ])
        assert list(registry.claims) == ["Alpha", "beta", "zeta"]
        assert list(registry.skills) == ["a", "b"]

    def test_discovery_order_does_not_matter(self):
        skills = [
            _skill("css", ["add css"], ["ui"]),
            _skill("tailwind", ["add css"], ["ui"]),
            _skill("pytest", ["add tests"], ["backend"]),
        ]
        first = build_registry(skills)
        second = build_registry(list(reversed(skills)))
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_registry_is_read_only(self):
        registry = build_registry([_skill("a", ["x"])])
        with pytest.raises(TypeError):
            registry.skills["b"] = _skill("b")

    def test_scopes(self):
        registry = build_registry([_skill("a", scope=["root", "ui"]), _skill("b", scope=["api"])])
        assert registry.scopes == frozenset({"root", "ui", "api"})

    def test_duplicate_id_keeps_smaller_source(self):
        registry = build_registry([
            _skill("css", ["second"], source="skills/z/SKILL.md"),
            _skill("css", ["first"], source="skills/a/SKILL.md"),
        ])
        assert registry.skills["css"].triggers == ("first",)
        assert len(registry.duplicates) == 1
        assert registry.duplicates[0].error_type is ErrorType.MALFORMED_SKILL
        assert "second" not in registry.claims


class TestConflicts:
    def test_same_scope_is_conflict(self):
        registry = build_registry([
            _skill("tailwind", ["styling"], ["ui"]),
            _skill("css", ["styling"], ["ui"]),
        ])
        assert len(registry.conflicts) == 1
        conflict = registry.conflicts[0]
        assert conflict.trigger == "styling"
        assert conflict.skill_ids == ("css", "tailwind")
        assert conflict.scopes == frozenset({"ui"})

    def test_disjoint_scopes_are_not_conflict(self):
        """同一触发短语出现在不同 scope 中是允许的"""
        registry = build_registry([
            _skill("pytest", ["writing tests"], ["backend"]),
            _skill("vitest", ["writing tests"], ["ui"]),
        ])
        assert registry.conflicts == ()

    def test_tags_with_same_competitors_are_merged(self):
        registry = build_registry([
            _skill("a", ["t"], ["ui", "api"]),
            _skill("b", ["t"], ["ui", "api"]),
        ])
        assert len(registry.conflicts) == 1
        assert registry.conflicts[0].scopes == frozenset({"ui", "api"})

    def test_same_skill_twice_is_not_conflict(self):
        registry = build_registry([_skill("a", ["t", "t"], ["ui"])])
        assert registry.conflicts == ()


class TestView:
    def test_rows_filtered_by_scope(self):
        registry = build_registry([
            _skill("pytest", ["adding pytest support"], ["backend"]),
            _skill("tailwind", ["styling components"], ["ui"]),
            _skill("docs", ["writing docs"], ["root", "ui"]),
        ])
        view = registry.view(["ui"])
        assert view.rows == (("styling components", "tailwind"), ("writing docs", "docs"))
        assert view.conflicts == ()

    def test_omit_policy_drops_conflicting_rows(self):
        registry = build_registry([
            _skill("css", ["add css"], ["ui"]),
            _skill("tailwind", ["add css", "add theme"], ["ui"]),
        ])
        view = registry.view(["ui"])
        assert view.rows == (("add theme", "tailwind"),)
        assert [c.trigger for c in view.conflicts] == ["add css"]

    def test_first_wins_policy(self):
        registry = build_registry(
            [_skill("tailwind", ["add css"], ["ui"]), _skill("css", ["add css"], ["ui"])],
            policy=ConflictPolicy.FIRST_WINS,
        )
        view = registry.view(["ui"])
        assert view.rows == (("add css", "css"),)
        assert len(view.conflicts) == 1

    def test_cross_scope_collision_inside_one_document(self):
        """不同 scope 的技能进入同一文档时，同一触发短语仍然冲突"""
        registry = build_registry([
            _skill("pytest", ["writing tests"], ["backend"]),
            _skill("vitest", ["writing tests"], ["ui"]),
        ])
        assert registry.view(["backend"]).rows == (("writing tests", "pytest"),)
        view = registry.view(["backend", "ui"])
        assert view.rows == ()
        assert view.conflicts[0].skill_ids == ("pytest", "vitest")

    def test_skills_without_triggers_have_no_rows(self):
        registry = build_registry([_skill("notes")])
        assert registry.view(["root"]).rows == ()


class TestResolve:
    @pytest.fixture
    def registry(self):
        return build_registry([
            _skill("pytest", ["writing tests"], ["backend"]),
            _skill("vitest", ["writing tests"], ["ui"]),
            _skill("tailwind", ["styling"], ["ui"]),
        ])

    def test_unique(self, registry):
        assert registry.resolve("styling") == "tailwind"
        assert registry.resolve("  styling ") == "tailwind"

    def test_scoped(self, registry):
        assert registry.resolve("writing tests", ["ui"]) == "vitest"

    def test_conflict(self, registry):
        with pytest.raises(TriggerConflictError) as exc_info:
            registry.resolve("writing tests")
        assert exc_info.value.skill_ids == ("pytest", "vitest")
        assert exc_info.value.to_dict()["error_type"] == "trigger_conflict"

    def test_unknown(self, registry):
        with pytest.raises(KeyError):
            registry.resolve("deploying")
        with pytest.raises(KeyError):
            registry.resolve("styling", ["backend"])


class TestPolicy:
    def test_parse(self):
        assert ConflictPolicy.parse("First-Wins") is ConflictPolicy.FIRST_WINS
        assert ConflictPolicy.parse(ConflictPolicy.OMIT) is ConflictPolicy.OMIT

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            ConflictPolicy.parse("last-wins")
