"""
skill-sync 包入口点 - 支持 `python -m skillsync` 调用
"""

from skillsync.main import app

if __name__ == "__main__":
    app()
