from typing import Any, Dict, List, Optional, Union

from contract_client.common.log import logger
from contract_client.contracts.model import Contract, ContractData
from contract_client.integrations.api.transport import AuthenticatedTransport
from contract_client.integrations.supabase.storage import SupabaseStorage


class ContractsRepository:
    """合同仓储：所有领域请求都经由鉴权管线发出"""

    BASE_PATH = "/contracts/"

    def __init__(
        self,
        transport: AuthenticatedTransport,
        storage: Optional[SupabaseStorage] = None,
    ):
        self.transport = transport
        self.storage = storage

    def _detail_path(self, contract_id: str) -> str:
        return f"{self.BASE_PATH}{contract_id}/"

    def _require_storage(self) -> SupabaseStorage:
        if self.storage is None:
            raise RuntimeError("对象存储尚未配置")
        return self.storage

    async def list(self) -> List[Contract]:
        resp = await self.transport.get(self.BASE_PATH)
        body = resp.json()
        # 兼容分页响应 {"results": [...]}
        if isinstance(body, dict):
            body = body.get("results", [])
        return [Contract.model_validate(item) for item in body]

    async def get(self, contract_id: str) -> Contract:
        resp = await self.transport.get(self._detail_path(contract_id))
        return Contract.model_validate(resp.json())

    async def create(self, data: ContractData) -> Contract:
        resp = await self.transport.post(
            self.BASE_PATH,
            json=data.model_dump(mode="json", exclude_none=True),
        )
        contract = Contract.model_validate(resp.json())
        logger.info(f"合同创建成功: {contract.id}")
        return contract

    async def update(
        self, contract_id: str, data: Union[ContractData, Dict[str, Any]]
    ) -> Contract:
        if isinstance(data, ContractData):
            data = data.model_dump(mode="json", exclude_none=True)
        resp = await self.transport.put(self._detail_path(contract_id), json=data)
        return Contract.model_validate(resp.json())

    async def patch(self, contract_id: str, fields: Dict[str, Any]) -> Contract:
        resp = await self.transport.patch(self._detail_path(contract_id), json=fields)
        return Contract.model_validate(resp.json())

    async def delete(self, contract_id: str) -> None:
        await self.transport.delete(self._detail_path(contract_id))
        logger.info(f"合同已删除: {contract_id}")

    async def upload_pdf(self, contract_id: str, file_path: str) -> Contract:
        """先上传 PDF 到对象存储，再把 URL 回写到合同"""
        pdf_url = await self._require_storage().upload(file_path, contract_id)
        return await self.patch(contract_id, {"pdf_url": pdf_url})

    async def download_pdf(self, contract_id: str, file_name: str) -> bytes:
        return await self._require_storage().download(f"{contract_id}/{file_name}")

    async def get_pdf_url(
        self, contract_id: str, file_name: str, ttl: int = 3600
    ) -> str:
        return await self._require_storage().sign_url(
            f"{contract_id}/{file_name}", ttl
        )
