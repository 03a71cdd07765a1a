"""命令行测试"""

import json

import pytest
from typer.testing import CliRunner

from skillsync.config import settings
from skillsync.main import app
from tests.conftest import EMPTY_REGION_DOC

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_settings(monkeypatch):
    """日志只保留 CRITICAL，避免干扰 JSON 输出"""
    monkeypatch.setattr(settings, "log_level", "CRITICAL")
    monkeypatch.setattr(settings, "log_to_file", False)
    monkeypatch.setattr(settings, "targets", {})
    monkeypatch.setattr(settings, "conflict_policy", "omit")


@pytest.fixture
def project(tmp_path, write_skill, write_doc):
    write_skill("pytest", ["adding pytest support"])
    write_skill("tailwind", ["styling components"], ["ui"])
    write_doc("AGENTS.md", EMPTY_REGION_DOC)
    write_doc("ui/AGENTS.md", EMPTY_REGION_DOC)
    return tmp_path


def _invoke(*args: str):
    return runner.invoke(app, list(args))


def _json(result) -> dict:
    return json.loads(result.stdout)


class TestCheckAndWrite:
    def test_check_reports_pending(self, project):
        result = _invoke("check", "-C", str(project), "--json")
        assert result.exit_code == 2, result.output
        data = _json(result)
        assert data["committed"] is False
        assert data["summary"]["updated"] == 2
        assert (project / "AGENTS.md").read_text(encoding="utf-8") == EMPTY_REGION_DOC

    def test_write_then_check(self, project):
        result = _invoke("write", "-C", str(project))
        assert result.exit_code == 0, result.output
        assert "`pytest`" in (project / "AGENTS.md").read_text(encoding="utf-8")

        result = _invoke("check", "-C", str(project), "--json")
        assert result.exit_code == 0, result.output
        assert _json(result)["summary"]["unchanged"] == 2

    def test_check_human_output_with_diff(self, project):
        result = _invoke("check", "-C", str(project), "--diff")
        assert result.exit_code == 2
        assert "ui/AGENTS.md" in result.stdout
        assert "+| styling components | `tailwind` |" in result.stdout

    def test_conflict_exit_code(self, project, write_skill):
        write_skill("css", ["styling components"], ["ui"])
        result = _invoke("write", "-C", str(project), "--json")
        assert result.exit_code == 1
        conflicts = _json(result)["conflicts"]
        assert conflicts == [
            {"trigger": "styling components", "skill_ids": ["css", "tailwind"], "document": "ui/AGENTS.md"}
        ]

    def test_strict_counts_malformed_skills(self, project, skills_dir):
        (skills_dir / "broken").mkdir()
        (skills_dir / "broken" / "SKILL.md").write_text("oops\n", encoding="utf-8")

        assert _invoke("write", "-C", str(project)).exit_code == 0
        assert _invoke("write", "-C", str(project), "--strict").exit_code == 1

    def test_unknown_policy(self, project):
        result = _invoke("check", "-C", str(project), "--policy", "last-wins")
        assert result.exit_code == 1


class TestTargets:
    def test_target_option(self, project):
        result = _invoke("check", "-C", str(project), "--json", "-t", "AGENTS.md=root,ui")
        data = _json(result)
        assert [d["path"] for d in data["documents"]] == ["AGENTS.md"]
        assert "`tailwind`" in data["documents"][0]["diff"]

    def test_invalid_target_option(self, project):
        result = _invoke("check", "-C", str(project), "-t", "AGENTS.md")
        assert result.exit_code == 1

    def test_config_file(self, project):
        (project / "skill-sync.yaml").write_text(
            "targets:\n  - path: ui/AGENTS.md\n    scopes: [ui]\n", encoding="utf-8"
        )
        data = _json(_invoke("check", "-C", str(project), "--json"))
        assert [d["path"] for d in data["documents"]] == ["ui/AGENTS.md"]

    @pytest.mark.parametrize(
        "content",
        [
            "targets:\n  - path: AGENTS.md\n    regions: [foo]\n",
            "targets:\n  - path: AGENTS.md\n    scopes: [1]\n",
        ],
    )
    def test_invalid_config_file(self, project, content):
        (project / "skill-sync.yaml").write_text(content, encoding="utf-8")
        result = _invoke("check", "-C", str(project))
        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_scope_filter(self, project):
        data = _json(_invoke("check", "-C", str(project), "--json", "--scope", "ui"))
        assert [d["path"] for d in data["documents"]] == ["ui/AGENTS.md"]


class TestRegistryCommands:
    def test_list_json(self, project):
        result = _invoke("list", "-C", str(project), "--json")
        assert result.exit_code == 0
        data = _json(result)
        assert [s["id"] for s in data["skills"]] == ["pytest", "tailwind"]
        assert data["conflicts"] == []
        assert data["errors"] == []

    def test_list_with_conflict(self, project, write_skill):
        write_skill("css", ["styling components"], ["ui"])
        result = _invoke("list", "-C", str(project))
        assert result.exit_code == 1
        assert "styling components" in result.stdout

    def test_lookup(self, project):
        result = _invoke("lookup", "styling components", "-C", str(project))
        assert result.exit_code == 0
        assert result.stdout.strip() == "tailwind"

    def test_lookup_unknown(self, project):
        result = _invoke("lookup", "deploying", "-C", str(project))
        assert result.exit_code == 1

    def test_lookup_out_of_scope(self, project):
        result = _invoke("lookup", "styling components", "--scope", "root", "-C", str(project))
        assert result.exit_code == 1


class TestLogFiles:
    def test_write_logs_to_files(self, project, monkeypatch, write_doc):
        """log_to_file 开启时，失败的文档进入 error.log"""
        log_dir = project / "logs"
        monkeypatch.setattr(settings, "log_level", "INFO")
        monkeypatch.setattr(settings, "log_to_file", True)
        monkeypatch.setattr(settings, "log_dir", str(log_dir))
        write_doc("docs/AGENTS.md", "# Docs\n")

        result = _invoke("write", "-C", str(project), "-t", "docs/AGENTS.md=root")

        assert result.exit_code == 1
        assert "Built registry" in (log_dir / "skill-sync.log").read_text(encoding="utf-8")
        errors = (log_dir / "error.log").read_text(encoding="utf-8")
        assert "docs/AGENTS.md" in errors
        assert "Built registry" not in errors


class TestMisc:
    def test_version(self):
        from skillsync import __version__

        result = _invoke("--version")
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_command_prints_help(self):
        result = _invoke()
        assert result.exit_code == 0
        assert "check" in result.stdout
