"""日志配置。"""

from __future__ import annotations

import logging


def setup_logging(level: int = logging.INFO) -> None:
    """初始化项目日志配置，工作进程继承同一格式。"""

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(processName)s] %(levelname)s %(name)s: %(message)s",
    )
    # 逐文件日志已经足够详细，第三方库只保留警告。
    logging.getLogger("PIL").setLevel(max(level, logging.WARNING))
