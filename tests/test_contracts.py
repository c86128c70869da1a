import asyncio
import json
from datetime import date

import httpx
import pytest
from pydantic import ValidationError

from conftest import signed_in
from contract_client.auth.errors import StorageError
from contract_client.contracts import (
    ContractData,
    ContractStatus,
    ContractsRepository,
)
from contract_client.integrations.supabase import BucketConfig, SupabaseSettings
from contract_client.integrations.supabase.storage import SupabaseStorage

CONTRACT = {
    "id": 42,
    "title": "Lease",
    "description": "Office lease",
    "expiry_date": "2027-01-31",
    "status": "active",
    "parties_involved": ["ACME", "Globex"],
    "pdf_url": None,
    "created_at": "2026-01-01T10:00:00Z",
    "updated_at": "2026-01-02T10:00:00Z",
}

SUPABASE = SupabaseSettings(
    url="http://sb.test",
    anon_key="anon-key",
    buckets={
        "contracts": BucketConfig(
            name="contracts",
            path="{owner_id}/{timestamp}.{ext}",
            expires=3600,
            cache_control=3600,
        )
    },
)


class FakeStorageServer:
    def __init__(self):
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path.startswith("/storage/v1/object/sign/"):
            ref = path[len("/storage/v1"):]
            return httpx.Response(200, json={"signedURL": f"{ref}?token=t"})
        if request.method == "POST" and path.startswith("/storage/v1/object/contracts/"):
            return httpx.Response(200, json={"Key": path})
        if request.method == "GET" and path == "/storage/v1/object/contracts/42/doc.pdf":
            return httpx.Response(200, content=b"%PDF-1.7")
        return httpx.Response(404, json={"message": "Object not found"})

    def storage(self) -> SupabaseStorage:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return SupabaseStorage("contracts", config=SUPABASE, client=client)


def test_contract_data_requires_fields():
    with pytest.raises(ValidationError):
        ContractData(title="", description="x", expiry_date=date(2027, 1, 1))
    with pytest.raises(ValidationError):
        ContractData(description="x", expiry_date=date(2027, 1, 1))

    data = ContractData(title="Lease", description="x", expiry_date="2027-01-01")
    assert data.status is ContractStatus.PENDING
    assert data.parties_involved == []


def test_list_and_get_contracts(api, store, make_session):
    signed_in(store)
    api.add("GET", "/contracts/", httpx.Response(200, json=[CONTRACT]))
    api.add("GET", "/contracts/42/", httpx.Response(200, json=CONTRACT))

    async def scenario():
        session = make_session()
        repo = ContractsRepository(session.transport)
        contracts = await repo.list()
        contract = await repo.get("42")
        await session.teardown()
        return contracts, contract

    contracts, contract = asyncio.run(scenario())
    assert [c.id for c in contracts] == ["42"]
    assert contract.status is ContractStatus.ACTIVE
    assert contract.expiry_date == date(2027, 1, 31)
    assert api.auth_headers("/contracts/") == ["Bearer A1"]


def test_list_accepts_paginated_response(api, store, make_session):
    signed_in(store)
    api.add("GET", "/contracts/", httpx.Response(200, json={"count": 1, "results": [CONTRACT]}))

    async def scenario():
        session = make_session()
        contracts = await ContractsRepository(session.transport).list()
        await session.teardown()
        return contracts

    assert len(asyncio.run(scenario())) == 1


def test_create_update_delete(api, store, make_session):
    signed_in(store)
    api.add("POST", "/contracts/", httpx.Response(201, json=CONTRACT))
    api.add("PUT", "/contracts/42/", httpx.Response(200, json={**CONTRACT, "title": "New"}))
    api.add("DELETE", "/contracts/42/", httpx.Response(204))

    async def scenario():
        session = make_session()
        repo = ContractsRepository(session.transport)
        created = await repo.create(
            ContractData(
                title="Lease",
                description="Office lease",
                expiry_date=date(2027, 1, 31),
                status=ContractStatus.ACTIVE,
                parties_involved=["ACME", "Globex"],
            )
        )
        updated = await repo.update("42", {"title": "New"})
        await repo.delete("42")
        await session.teardown()
        return created, updated

    created, updated = asyncio.run(scenario())
    assert created.id == "42"
    assert updated.title == "New"
    create_request = next(r for r in api.requests if r.method == "POST")
    assert json.loads(create_request.content) == {
        "title": "Lease",
        "description": "Office lease",
        "expiry_date": "2027-01-31",
        "status": "active",
        "parties_involved": ["ACME", "Globex"],
    }
    assert api.count("/contracts/42/", method="DELETE") == 1


def test_upload_pdf_then_patches_contract(api, store, make_session, tmp_path):
    signed_in(store)
    pdf = tmp_path / "lease.pdf"
    pdf.write_bytes(b"%PDF-1.7")
    server = FakeStorageServer()

    def patch(request):
        body = json.loads(request.content)
        return httpx.Response(200, json={**CONTRACT, **body})

    api.add("PATCH", "/contracts/42/", patch)

    async def scenario():
        session = make_session()
        storage = server.storage()
        repo = ContractsRepository(session.transport, storage)
        contract = await repo.upload_pdf("42", str(pdf))
        await storage.aclose()
        await session.teardown()
        return contract

    contract = asyncio.run(scenario())
    upload = server.requests[0]
    assert upload.url.path.startswith("/storage/v1/object/contracts/42/")
    assert upload.url.path.endswith(".pdf")
    assert upload.headers["Content-Type"] == "application/pdf"
    assert upload.headers["Authorization"] == "Bearer anon-key"
    assert upload.content == b"%PDF-1.7"
    assert contract.pdf_url.startswith("http://sb.test/storage/v1/object/public/contracts/42/")


def test_download_and_signed_url(api, store, make_session):
    server = FakeStorageServer()

    async def scenario():
        session = make_session()
        storage = server.storage()
        repo = ContractsRepository(session.transport, storage)
        data = await repo.download_pdf("42", "doc.pdf")
        url = await repo.get_pdf_url("42", "doc.pdf")
        with pytest.raises(StorageError):
            await repo.download_pdf("42", "missing.pdf")
        await storage.aclose()
        await session.teardown()
        return data, url

    data, url = asyncio.run(scenario())
    assert data == b"%PDF-1.7"
    assert url == "http://sb.test/storage/v1/object/sign/contracts/42/doc.pdf?token=t"
    sign_request = server.requests[1]
    assert json.loads(sign_request.content) == {"expiresIn": 3600}


def test_pdf_operations_require_storage(api, store, make_session):
    async def scenario():
        session = make_session()
        repo = ContractsRepository(session.transport)
        with pytest.raises(RuntimeError):
            await repo.get_pdf_url("42", "doc.pdf")
        await session.teardown()

    asyncio.run(scenario())
