import os
import time
from typing import Optional

import httpx

from contract_client.auth.errors import StorageError
from contract_client.common.log import logger
from contract_client.integrations.supabase import SupabaseSettings, settings


class SupabaseStorage:
    """Supabase Storage REST 客户端：上传 / 下载 / 签名 URL"""

    def __init__(
        self,
        bucket_key: str = "contracts",
        config: SupabaseSettings = settings,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = config.url
        self.key = config.anon_key

        bucket_conf = config.buckets.get(bucket_key)
        if bucket_conf is None:
            raise ValueError(
                f"Bucket configuration '{bucket_key}' not found in settings.buckets"
            )

        self.bucket = bucket_conf.name
        self.path = bucket_conf.path
        self.expires = bucket_conf.expires
        self.cache_control = bucket_conf.cache_control
        self._client = client or httpx.AsyncClient(timeout=30.0)

    def valid(self) -> bool:
        return bool(self.url and self.key and self.bucket)

    def _headers(self, content_type: str | None = None) -> dict[str, str]:
        h = {"Authorization": f"Bearer {self.key}", "apikey": self.key}
        if content_type:
            h["Content-Type"] = content_type
        return h

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise StorageError(f"对象存储网络错误: {e}") from e

    async def upload_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        url = f"{self.url}/storage/v1/object/{self.bucket}/{path}"
        headers = self._headers(content_type)
        headers["cache-control"] = f"max-age={self.cache_control}"
        resp = await self._request("POST", url, headers=headers, content=data)
        if resp.status_code not in (200, 201):
            logger.error(f"上传文件失败: {path}: {resp.text}")
            raise StorageError(resp.text)
        return self.public_url(path)

    async def upload(self, file_path: str, owner_id: str) -> str:
        """上传 PDF 到 {owner_id}/{时间戳}.{扩展名}，返回公开 URL"""
        ext = os.path.splitext(file_path)[1].lstrip(".") or "pdf"
        path = self.path.format(
            owner_id=owner_id,
            timestamp=int(time.time() * 1000),
            ext=ext,
        )
        with open(file_path, "rb") as f:
            data = f.read()
        return await self.upload_bytes(path, data, "application/pdf")

    async def download(self, path: str) -> bytes:
        url = f"{self.url}/storage/v1/object/{self.bucket}/{path}"
        resp = await self._request("GET", url, headers=self._headers())
        if resp.status_code != 200:
            logger.error(f"下载文件失败: {path}: {resp.text}")
            raise StorageError("下载文件失败")
        return resp.content

    async def sign_url(self, path: str, expires: int | None = None) -> str:
        ex = expires or self.expires
        url = f"{self.url}/storage/v1/object/sign/{self.bucket}/{path}"
        body = {"expiresIn": ex}
        resp = await self._request(
            "POST",
            url,
            headers=self._headers("application/json"),
            json=body,
        )
        if resp.status_code != 200:
            logger.error(f"获取签名 URL 失败: {path}: {resp.text}")
            raise StorageError("获取文件 URL 失败")
        data = resp.json()
        signed = data.get("signedURL") or data.get("signedUrl") or ""
        if signed.startswith("/"):
            return f"{self.url}/storage/v1{signed}"
        return signed

    def public_url(self, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{path}"

    async def aclose(self) -> None:
        await self._client.aclose()
