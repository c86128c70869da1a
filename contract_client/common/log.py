import os
import re
import sys
from loguru import logger

# 日志中不得出现令牌明文
_BEARER = re.compile(r"(Bearer\s+)[^\s\"',]+")


def _redact(record) -> None:
    record["message"] = _BEARER.sub(r"\1***", record["message"])


def configure_logger(
    level: str | None = None,
    log_file: str | None = None,
    app_name: str = "contract-client",
):
    level = str(level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file if log_file is not None else os.getenv("LOG_FILE", "")

    # 清理已有 sink，避免重复初始化导致重复输出
    logger.remove()
    logger.configure(patcher=_redact, extra={"app": app_name})

    # stdout 留给 CLI 输出结果
    logger.add(
        sys.stderr,
        level=level,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> - {extra[app]} - <level>{level}</level> - <level>{message}</level>",
    )

    if log_file:
        logger.add(
            f"{log_file}.log",
            level=level,
            rotation="1 MB",
            retention=7,
            encoding="utf-8",
            format="{time:YYYY-MM-DD HH:mm:ss} - {extra[app]} - {level} - {message}",
        )

    return logger


logger = configure_logger()
