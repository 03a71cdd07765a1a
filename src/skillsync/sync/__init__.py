"""
文档同步

- render: 注册表视图 -> Markdown 表格
- patcher: 定位区域并拼接表格
- targets: 目标文档配置
- orchestrator: 规划 / 提交 / 报告
"""

from .orchestrator import DocumentPlan, SyncOrchestrator, SyncPlan, sync
from .patcher import Region, begin_marker, end_marker, locate_region, patch_document, splice
from .render import parse_table_rows, render_table
from .report import (
    ConflictRecord,
    DocumentResult,
    DocumentStatus,
    ExitCode,
    OrphanRecord,
    SyncReport,
)
from .targets import (
    RegionSpec,
    TargetDocument,
    default_targets,
    discover_scopes,
    filter_targets,
    load_targets_file,
    make_target,
    parse_target_option,
    targets_from_mapping,
)

__all__ = [
    # Orchestrator
    "SyncOrchestrator",
    "SyncPlan",
    "DocumentPlan",
    "sync",
    # Patcher
    "Region",
    "begin_marker",
    "end_marker",
    "locate_region",
    "patch_document",
    "splice",
    # Render
    "render_table",
    "parse_table_rows",
    # Report
    "SyncReport",
    "DocumentResult",
    "DocumentStatus",
    "ConflictRecord",
    "OrphanRecord",
    "ExitCode",
    # Targets
    "RegionSpec",
    "TargetDocument",
    "make_target",
    "default_targets",
    "discover_scopes",
    "filter_targets",
    "load_targets_file",
    "parse_target_option",
    "targets_from_mapping",
]
