from __future__ import annotations

import json
import os
import tempfile
from typing import Dict, Mapping, Optional

from contract_client.auth.errors import StorageUnavailable

# 本地持久化键名
USER_KEY = "user"
ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"


class CredentialStore:
    """凭据存储接口：薄的持久化键值表，不做校验也不加密"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        self.update({key: value})

    def update(self, values: Mapping[str, str]) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def is_empty(self) -> bool:
        return all(
            self.get(k) is None for k in (USER_KEY, ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY)
        )


class MemoryCredentialStore(CredentialStore):
    """进程内存储，进程退出即丢失"""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def update(self, values: Mapping[str, str]) -> None:
        self._data.update(values)

    def clear(self) -> None:
        self._data.clear()


class FileCredentialStore(CredentialStore):
    """基于 JSON 文件的凭据存储，跨进程重启保留"""

    def __init__(self, path: str):
        self.path = path
        self._cache: Optional[Dict[str, str]] = None

    def _read_json(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise StorageUnavailable(f"读取凭据文件失败: {e}") from e
        # 空文件视为无数据
        if not text.strip():
            return {}
        try:
            obj = json.loads(text)
        except ValueError as e:
            raise StorageUnavailable(f"凭据文件已损坏: {e}") from e
        if not isinstance(obj, dict):
            return {}
        return {str(k): str(v) for k, v in obj.items() if v is not None}

    def _write_json(self, data: Dict[str, str]) -> None:
        dirpath = os.path.dirname(self.path) or "."
        try:
            os.makedirs(dirpath, exist_ok=True)
            # 先写临时文件再替换，保证多键写入原子生效
            fd, tmp = tempfile.mkstemp(dir=dirpath, prefix=".session-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.remove(tmp)
                raise
        except OSError as e:
            raise StorageUnavailable(f"写入凭据文件失败: {e}") from e

    def _data(self) -> Dict[str, str]:
        if self._cache is None:
            self._cache = self._read_json()
        return self._cache

    def get(self, key: str) -> Optional[str]:
        return self._data().get(key)

    def update(self, values: Mapping[str, str]) -> None:
        data = dict(self._data())
        data.update(values)
        self._write_json(data)
        self._cache = data

    def clear(self) -> None:
        self._cache = {}
        try:
            if os.path.exists(self.path):
                os.remove(self.path)
        except OSError as e:
            raise StorageUnavailable(f"清理凭据文件失败: {e}") from e
