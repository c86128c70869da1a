"""合同领域模块。"""

from contract_client.contracts.model import Contract, ContractData, ContractStatus
from contract_client.contracts.repo import ContractsRepository

__all__ = ["Contract", "ContractData", "ContractStatus", "ContractsRepository"]
