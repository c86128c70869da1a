import argparse
import asyncio
import getpass
import json
import os
import sys

from pydantic import ValidationError

from contract_client import __version__
from contract_client.auth.errors import ContractClientError
from contract_client.auth.model import UserCredentials
from contract_client.common.app_settings import settings
from contract_client.common.log import configure_logger, logger
from contract_client.contracts import ContractData, ContractsRepository, ContractStatus
from contract_client.integrations.supabase.storage import SupabaseStorage
from contract_client.session.manager import Session
from contract_client.session.store import FileCredentialStore

STORAGE_COMMANDS = ("upload", "download", "pdf-url")


def _add_contract_fields(p, required: bool) -> None:
    p.add_argument("--title", required=required)
    p.add_argument("--description", required=required)
    p.add_argument("--expiry-date", required=required, help="YYYY-MM-DD")
    p.add_argument("--status", choices=[s.value for s in ContractStatus])
    p.add_argument("--party", action="append", dest="parties", help="可重复指定")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog=settings.app_name)
    parser.add_argument("--version", action="version", version=__version__)
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("login", "register"):
        p = sub.add_parser(name, help="登录" if name == "login" else "注册并登录")
        p.add_argument("email")
        p.add_argument("--password", help="缺省时交互输入")

    sub.add_parser("logout", help="登出并清理本地凭据")
    sub.add_parser("whoami", help="显示当前用户")
    sub.add_parser("list", help="列出合同")

    for name in ("show", "delete"):
        p = sub.add_parser(name, help="查看合同" if name == "show" else "删除合同")
        p.add_argument("id")

    p = sub.add_parser("create", help="新建合同")
    _add_contract_fields(p, required=True)

    p = sub.add_parser("update", help="编辑合同，未指定的字段保持原值")
    p.add_argument("id")
    _add_contract_fields(p, required=False)

    p = sub.add_parser("upload", help="上传合同 PDF")
    p.add_argument("id")
    p.add_argument("file")

    p = sub.add_parser("download", help="下载合同 PDF")
    p.add_argument("id")
    p.add_argument("file_name")
    p.add_argument("--output", help="缺省保存为 file_name")

    p = sub.add_parser("pdf-url", help="获取合同 PDF 的签名 URL")
    p.add_argument("id")
    p.add_argument("file_name")
    p.add_argument("--ttl", type=int, default=3600)

    return parser.parse_args(argv)


def contract_fields(args) -> dict:
    """收集命令行中显式给出的合同字段"""
    fields = {
        "title": args.title,
        "description": args.description,
        "expiry_date": args.expiry_date,
        "status": args.status,
        "parties_involved": args.parties,
    }
    return {k: v for k, v in fields.items() if v is not None}


def _dump(obj) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


async def _run_contract_command(args, repo: ContractsRepository) -> None:
    if args.command == "list":
        _dump([c.model_dump(mode="json") for c in await repo.list()])
    elif args.command == "show":
        _dump((await repo.get(args.id)).model_dump(mode="json"))
    elif args.command == "delete":
        await repo.delete(args.id)
    elif args.command == "create":
        data = ContractData.model_validate(contract_fields(args))
        _dump((await repo.create(data)).model_dump(mode="json"))
    elif args.command == "update":
        # 与编辑表单一致：先取回原合同，再整体提交
        current = await repo.get(args.id)
        data = ContractData.model_validate(
            {**current.model_dump(), **contract_fields(args)}
        )
        _dump((await repo.update(args.id, data)).model_dump(mode="json"))
    elif args.command == "upload":
        _dump((await repo.upload_pdf(args.id, args.file)).model_dump(mode="json"))
    elif args.command == "download":
        output = args.output or os.path.basename(args.file_name)
        with open(output, "wb") as f:
            f.write(await repo.download_pdf(args.id, args.file_name))
        print(output)
    elif args.command == "pdf-url":
        print(await repo.get_pdf_url(args.id, args.file_name, args.ttl))


async def run(args) -> int:
    store = FileCredentialStore(settings.credential_file)
    async with Session(store) as session:
        session.on_redirect(
            lambda path: logger.warning(f"会话已失效，请重新登录 ({path})")
        )
        if args.command in ("login", "register"):
            password = args.password or getpass.getpass("密码: ")
            if args.command == "login":
                user = await session.sign_in(args.email, password)
            else:
                user = await session.sign_up(
                    UserCredentials(email=args.email, password=password)
                )
            _dump(user.model_dump())
            return 0
        if args.command == "logout":
            session.sign_out()
            return 0
        if args.command == "whoami":
            user = session.current_user
            _dump(user.model_dump() if user else None)
            return 0 if user else 1

        if session.current_user is None:
            logger.error("未登录，请先执行 login")
            return 1

        storage = None
        if args.command in STORAGE_COMMANDS:
            storage = SupabaseStorage("contracts")
            if not storage.valid():
                await storage.aclose()
                logger.error("SUPABASE_URL 和 SUPABASE_ANON_KEY 环境变量必须设置")
                return 1
        try:
            await _run_contract_command(args, ContractsRepository(session.transport, storage))
        finally:
            if storage is not None:
                await storage.aclose()
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logger(
        level=settings.log_level,
        log_file=settings.log_file,
        app_name=settings.app_name,
    )
    try:
        return asyncio.run(run(args))
    except ValidationError as e:
        logger.error(f"合同字段无效: {e}")
        return 1
    except ContractClientError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
