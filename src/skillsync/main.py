"""
skill-sync CLI 入口

使用 Typer 和 Rich 提供命令行界面:
- check: 只计算报告，不写文件 (CI 用)
- write: 计算并写回有变化的文档
- list: 列出注册表中的技能
- lookup: 查询触发短语对应的技能
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from .config import settings
from .errors import SyncError, TriggerConflictError
from .logging import get_logger, setup_logging
from .skills import ConflictPolicy, Registry
from .sync import (
    DocumentStatus,
    ExitCode,
    SyncOrchestrator,
    SyncReport,
    TargetDocument,
    load_targets_file,
    parse_target_option,
    targets_from_mapping,
)

logger = get_logger(__name__)

# Typer 应用
app = typer.Typer(
    name="skill-sync",
    help="skill-sync - 同步 AGENTS.md 中的 auto-invoke 技能表格",
    add_completion=False,
)

# Rich 控制台
console = Console()

# 公共参数
ProjectRootOption = typer.Option(None, "--project-root", "-C", help="项目根目录")
SkillsDirOption = typer.Option(None, "--skills-dir", "-s", help="技能目录 (相对项目根目录)")
TargetOption = typer.Option(None, "--target", "-t", help="目标文档 PATH=scope1,scope2，可重复")
ScopeOption = typer.Option(None, "--scope", help="只同步覆盖该 scope 的文档，可重复")
PolicyOption = typer.Option(None, "--policy", help="冲突策略: omit / first-wins")
JsonOption = typer.Option(False, "--json", help="以 JSON 输出报告")
StrictOption = typer.Option(False, "--strict", help="技能文档解析失败也返回 1")

STATUS_STYLES = {
    DocumentStatus.UNCHANGED: "green",
    DocumentStatus.UPDATED: "yellow",
    DocumentStatus.FAILED: "red",
}


def _project_root(project_root: Optional[Path]) -> Path:
    return (project_root or settings.project_root).resolve()


def _skills_dir(root: Path, skills_dir: Optional[Path]) -> Path:
    return root / (skills_dir or Path(settings.skills_dir))


def _make_orchestrator(policy: Optional[str]) -> SyncOrchestrator:
    try:
        conflict_policy = ConflictPolicy.parse(policy or settings.conflict_policy)
    except ValueError:
        console.print(f"[red]未知冲突策略: {policy}[/red]")
        raise typer.Exit(ExitCode.ERRORS)
    return SyncOrchestrator(
        policy=conflict_policy,
        max_workers=settings.max_workers,
        default_scope=settings.default_scope,
    )


def resolve_targets(root: Path, target_options: Optional[list[str]]) -> Optional[list[TargetDocument]]:
    """
    解析目标文档

    命令行 > 配置项 targets > 配置文件 > None (由编排器按 scope 推导)
    """
    region = {"name": settings.region_name, "heading": settings.region_heading}

    if target_options:
        mapping: dict[str, list[str]] = {}
        for option in target_options:
            try:
                path, scopes = parse_target_option(option)
            except ValueError as e:
                console.print(f"[red]{e}[/red]")
                raise typer.Exit(ExitCode.ERRORS)
            mapping.setdefault(path, []).extend(scopes)
        return targets_from_mapping(mapping, root, **region)

    if settings.targets:
        return targets_from_mapping(settings.targets, root, **region)

    config_path = root / settings.config_file
    if config_path.is_file():
        try:
            return load_targets_file(config_path, root, **region)
        except SyncError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(ExitCode.ERRORS)

    return None


def print_report(report: SyncReport, show_diff: bool = False) -> None:
    """打印人类可读的报告"""
    table = Table(title="目标文档")
    table.add_column("文档", style="cyan")
    table.add_column("状态")
    table.add_column("详情", style="white")

    for doc in report.documents:
        style = STATUS_STYLES[doc.status]
        if doc.error:
            detail = f"{doc.error['error_type']}: {doc.error['message']}"
        else:
            detail = ", ".join(doc.regions)
        table.add_row(doc.path, f"[{style}]{doc.status.value}[/{style}]", detail)

    if report.documents:
        console.print(table)
    else:
        console.print("[yellow]没有可同步的目标文档[/yellow]")

    if report.conflicts:
        conflicts = Table(title="触发短语冲突", title_style="bold red")
        conflicts.add_column("触发短语", style="cyan")
        conflicts.add_column("技能", style="red")
        conflicts.add_column("文档")
        for c in report.conflicts:
            conflicts.add_row(c.trigger, ", ".join(c.skill_ids), c.document or "-")
        console.print(conflicts)

    if report.orphans:
        orphans = Table(title="孤立条目 (技能已不存在)", title_style="bold yellow")
        orphans.add_column("文档", style="cyan")
        orphans.add_column("触发短语")
        orphans.add_column("技能", style="yellow")
        for o in report.orphans:
            orphans.add_row(o.document, o.trigger, o.skill_id)
        console.print(orphans)

    if report.skill_errors:
        errors = Table(title="技能文档错误", title_style="bold red")
        errors.add_column("文件", style="cyan")
        errors.add_column("错误", style="red")
        for e in report.skill_errors:
            errors.add_row(e.get("path", "-"), e["message"])
        console.print(errors)

    if show_diff:
        for doc in report.updated:
            console.print(Syntax(doc.diff, "diff", theme="ansi_dark"))

    summary = report.summary()
    verb = "已更新" if report.committed else "待更新"
    console.print(
        f"{verb}: {summary['updated']}  未变化: {summary['unchanged']}  "
        f"失败: {summary['failed']}  冲突: {summary['conflicts']}"
    )


def _run(
    write: bool,
    project_root: Optional[Path],
    skills_dir: Optional[Path],
    target: Optional[list[str]],
    scope: Optional[list[str]],
    policy: Optional[str],
    as_json: bool,
    diff: bool,
    strict: bool,
) -> None:
    root = _project_root(project_root)
    orchestrator = _make_orchestrator(policy)
    targets = resolve_targets(root, target)
    logger.debug(
        f"Running {'write' if write else 'check'} in {root} "
        f"({len(targets) if targets is not None else 'derived'} targets)"
    )

    report = orchestrator.sync(
        _skills_dir(root, skills_dir),
        targets,
        write=write,
        root=root,
        scopes=scope,
    )

    if as_json:
        console.print_json(data=report.to_dict())
    else:
        print_report(report, show_diff=diff)

    raise typer.Exit(int(report.exit_code(check=not write, strict=strict)))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-V", help="显示版本信息"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
):
    """
    skill-sync - 同步 AGENTS.md 中的 auto-invoke 技能表格
    """
    if version:
        from . import __version__

        console.print(f"skill-sync v{__version__}")
        raise typer.Exit(0)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)

    setup_logging(
        log_dir=settings.log_path,
        log_level="DEBUG" if verbose else settings.log_level,
        log_to_file=settings.log_to_file,
    )


@app.command()
def check(
    project_root: Optional[Path] = ProjectRootOption,
    skills_dir: Optional[Path] = SkillsDirOption,
    target: Optional[list[str]] = TargetOption,
    scope: Optional[list[str]] = ScopeOption,
    policy: Optional[str] = PolicyOption,
    as_json: bool = JsonOption,
    diff: bool = typer.Option(False, "--diff", "-d", help="显示待写入的差异"),
    strict: bool = StrictOption,
):
    """检查文档是否与技能注册表一致 (不写文件)"""
    _run(False, project_root, skills_dir, target, scope, policy, as_json, diff, strict)


@app.command()
def write(
    project_root: Optional[Path] = ProjectRootOption,
    skills_dir: Optional[Path] = SkillsDirOption,
    target: Optional[list[str]] = TargetOption,
    scope: Optional[list[str]] = ScopeOption,
    policy: Optional[str] = PolicyOption,
    as_json: bool = JsonOption,
    strict: bool = StrictOption,
):
    """更新目标文档中的 auto-invoke 表格"""
    _run(True, project_root, skills_dir, target, scope, policy, as_json, False, strict)


def _load_registry(project_root: Optional[Path], skills_dir: Optional[Path], policy: Optional[str]):
    root = _project_root(project_root)
    orchestrator = _make_orchestrator(policy)
    return orchestrator.build_registry(_skills_dir(root, skills_dir))


def print_registry(registry: Registry, errors: list[SyncError]) -> None:
    table = Table(title=f"技能 ({len(registry.skills)})")
    table.add_column("ID", style="cyan")
    table.add_column("名称")
    table.add_column("Scope", style="magenta")
    table.add_column("触发短语", style="green")

    for skill in registry.skills.values():
        table.add_row(
            skill.id,
            skill.display_name,
            ", ".join(sorted(skill.scope)),
            "\n".join(skill.triggers) or "[dim]-[/dim]",
        )
    console.print(table)

    for conflict in registry.conflicts:
        console.print(
            f"[red]冲突[/red] '{conflict.trigger}': {', '.join(conflict.skill_ids)} "
            f"(scope: {', '.join(sorted(conflict.scopes))})"
        )
    for error in errors:
        console.print(f"[red]错误[/red] {error}")


@app.command(name="list")
def list_skills(
    project_root: Optional[Path] = ProjectRootOption,
    skills_dir: Optional[Path] = SkillsDirOption,
    as_json: bool = JsonOption,
):
    """列出注册表中的技能和冲突"""
    registry, errors = _load_registry(project_root, skills_dir, None)

    if as_json:
        data = registry.to_dict()
        data["errors"] = [e.to_dict() for e in errors]
        console.print_json(data=data)
    else:
        print_registry(registry, errors)

    raise typer.Exit(int(ExitCode.ERRORS if registry.conflicts else ExitCode.IN_SYNC))


@app.command()
def lookup(
    trigger: str = typer.Argument(..., help="触发短语"),
    scope: Optional[list[str]] = ScopeOption,
    project_root: Optional[Path] = ProjectRootOption,
    skills_dir: Optional[Path] = SkillsDirOption,
):
    """查询触发短语对应的技能 id"""
    registry, _ = _load_registry(project_root, skills_dir, None)

    try:
        skill_id = registry.resolve(trigger, scope or None)
    except KeyError:
        console.print(f"[yellow]没有技能声明触发短语: {trigger}[/yellow]")
        raise typer.Exit(ExitCode.ERRORS)
    except TriggerConflictError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(ExitCode.ERRORS)

    console.print(skill_id)


if __name__ == "__main__":
    app()
