"""
skill-sync 配置模块
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置"""

    # 路径配置
    project_root: Path = Field(
        default_factory=lambda: Path.cwd(),
        description="项目根目录 (默认为当前工作目录)",
    )
    skills_dir: str = Field(default="skills", description="技能文档目录 (相对 project_root)")
    config_file: str = Field(
        default="skill-sync.yaml",
        description="目标文档配置文件 (可选, 相对 project_root)",
    )

    # 目标文档: {文档路径: [scope, ...]}
    # 为空时依次回退到 config_file 和按 scope 推导的默认目标
    targets: dict[str, list[str]] = Field(default_factory=dict, description="目标文档及其 scope")

    # 区域配置
    region_name: str = Field(default="auto-invoke", description="注释标记中的区域名")
    region_heading: str = Field(default="Auto-invoke Skills", description="作为锚点的 Markdown 标题")
    default_scope: str = Field(default="root", description="未声明 scope 的技能使用的 scope")

    # 冲突处理: omit(冲突行不渲染) / first-wins(按技能 id 字典序取第一个)
    conflict_policy: str = Field(default="omit", description="触发短语冲突时的渲染策略")

    # 解析/规划阶段的线程数 (1=串行)
    max_workers: int = Field(default=1, description="解析技能和规划文档的并发线程数")

    # 日志
    log_level: str = Field(default="INFO", description="日志级别")
    log_dir: str = Field(default="", description="日志目录 (为空则不写文件)")
    log_to_file: bool = Field(default=False, description="是否输出日志文件")

    model_config = {
        "env_prefix": "SKILL_SYNC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("conflict_policy")
    @classmethod
    def _check_policy(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("omit", "first-wins"):
            raise ValueError(f"conflict_policy must be 'omit' or 'first-wins', got {value!r}")
        return value

    @field_validator("max_workers")
    @classmethod
    def _check_workers(cls, value: int) -> int:
        return max(1, value)

    @property
    def log_path(self) -> Path | None:
        """日志目录完整路径"""
        if not self.log_dir:
            return None
        return self.project_root / self.log_dir


# 全局配置实例
settings = Settings()
