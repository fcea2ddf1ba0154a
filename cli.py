#!/usr/bin/env python3
"""SpendChat command-line client"""

import argparse
import asyncio
import os
from pathlib import Path
from typing import Optional

from app.client import (
    AgentApiClient,
    ApiError,
    ChatSession,
    LocalKeySigner,
    TransactionHistory,
)
from app.config import settings
from app.logging_config import setup_logging
from app.services.address import format_units


def _session_file() -> Path:
    return Path(settings.client_state_dir) / "session"


def load_session_token() -> Optional[str]:
    path = _session_file()
    if not path.exists():
        return None
    return path.read_text(encoding="utf-8").strip() or None


def save_session_token(token: Optional[str]) -> None:
    path = _session_file()
    if token is None:
        path.unlink(missing_ok=True)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(token, encoding="utf-8")
    path.chmod(0o600)


async def cli_login(api: AgentApiClient, private_key: Optional[str]):
    """Sign in with a local key and keep the session cookie."""
    if not private_key:
        print("❌ Provide --private-key or set SPENDCHAT_PRIVATE_KEY")
        return

    signer = LocalKeySigner(private_key)
    nonce = await api.get_nonce()
    message = signer.build_sign_in_message(api.base_url, nonce, settings.chain_id)
    token = await api.sign_in(signer.address, message, signer.sign_message(message))
    save_session_token(token)
    print(f"✅ Signed in as {signer.address}")


async def cli_logout(api: AgentApiClient):
    await api.sign_out()
    save_session_token(None)
    print("Logged out.")


async def cli_status(api: AgentApiClient):
    status = await api.auth_status()
    if status.get("isAuthenticated"):
        print(f"✅ Signed in as {status['address']}")
    else:
        print(f"Not signed in ({status.get('error', 'no session')})")


async def cli_wallet(api: AgentApiClient):
    wallet = await api.get_server_wallet()
    print(f"Your address:          {wallet['address']}")
    print(f"Server wallet (owner): {wallet['serverWalletAddress']}")
    print(f"Smart account:         {wallet['smartAccountAddress']}")
    print("\nGrant USDC spend permissions to the smart account to enable transfers and swaps.")


async def cli_permissions(api: AgentApiClient):
    data = await api.get_permissions()
    permissions = data.get("permissions", [])
    if not permissions:
        print("No spend permissions found. Please set up spend permissions first.")
        return

    print(f"\n🔐 Spend permissions for {data['spender']}")
    print("-" * 50)
    for i, perm in enumerate(permissions, 1):
        allowance = format_units(int(perm["allowance"]), settings.usdc_decimals)
        days = int(perm["period"]) // 86400
        print(f"{i:2d}. {allowance:>10} USDC every {days} day(s)  [{perm.get('status') or 'Active'}]")


def cli_history(address: str, limit: Optional[int] = None):
    records = TransactionHistory().list(address)
    if limit:
        records = records[:limit]
    if not records:
        print("No transactions yet.")
        return

    for record in records:
        amount = format_units(int(record.amount), settings.usdc_decimals)
        target = record.recipient or record.to_token or ""
        print(
            f"{record.timestamp:%Y-%m-%d %H:%M}  {record.type:<8} {amount:>10} {record.token}  "
            f"{record.status.value:<9} {target}"
        )
        if record.tx_hash:
            print(f"    {record.tx_hash}")


async def cli_movement(api: AgentApiClient, movement_id: str):
    record = await api.get_fund_movement(movement_id)
    print(f"Fund movement {record['id']} ({record['kind']}): {record['state']}")
    for step in record.get("steps", []):
        print(f"  - {step['name']:<9} {step['status']:<9} {step.get('operation_id') or ''}")
    if record.get("error"):
        print(f"Error: {record['error']}")
    if record.get("funds_in_custody"):
        print("⚠️  Pulled funds are still held by the server wallet.")


async def cli_chat(api: AgentApiClient):
    """Interactive chat mode"""
    print("🤖 SpendChat")
    print("Type 'exit' to quit, 'help' for commands")
    print("-" * 40)

    session = ChatSession(api)

    while True:
        try:
            user_input = input("\n💬 You: ").strip()

            if user_input.lower() in ['exit', 'quit', 'q']:
                print("Goodbye! 👋")
                break
            elif user_input.lower() in ['help', 'h']:
                print("\nCommands:")
                print("  help  - Show this help")
                print("  exit  - Quit the chat")
                print("  clear - Clear chat history")
                print("  Send $0.10 USDC to 0x... - Transfer through your spend permissions")
                continue
            elif user_input.lower() == 'clear':
                session.clear()
                print("Chat history cleared.")
                continue
            elif not user_input:
                continue

            for message in await session.send(user_input):
                if message.role == "assistant":
                    print(f"🤖 Assistant: {message.content}")
            if session.error:
                print(f"❌ Error: {session.error}")

        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye! 👋")
            break


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SpendChat CLI")
    parser.add_argument("--api-url", default=None, help=f"Server URL (default: {settings.api_base_url})")
    parser.add_argument("--log-level", default="WARNING", help="Client log level")
    subparsers = parser.add_subparsers(dest="command")

    login_parser = subparsers.add_parser("login", help="Sign in with an Ethereum key")
    login_parser.add_argument("--private-key", default=os.environ.get("SPENDCHAT_PRIVATE_KEY"))
    subparsers.add_parser("logout", help="End the session")
    subparsers.add_parser("status", help="Show sign-in status")
    subparsers.add_parser("wallet", help="Show (and create) your server wallet")
    subparsers.add_parser("permissions", help="List spend permissions granted to your server wallet")
    subparsers.add_parser("chat", help="Interactive chat mode")

    history_parser = subparsers.add_parser("history", help="Show local transaction history")
    history_parser.add_argument("address", help="Wallet address")
    history_parser.add_argument("--limit", type=int, help="Show only the latest N transactions")

    movement_parser = subparsers.add_parser("movement", help="Inspect a server-side fund movement")
    movement_parser.add_argument("movement_id")
    return parser


async def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, console=True)

    if not args.command:
        parser.print_help()
        return

    command = args.command.lower()
    if command == "history":
        if args.limit is not None and args.limit <= 0:
            raise ValueError("Limit must be positive")
        cli_history(args.address, args.limit)
        return

    async with AgentApiClient(args.api_url, session_token=load_session_token()) as api:
        try:
            if command == "login":
                await cli_login(api, args.private_key)
            elif command == "logout":
                await cli_logout(api)
            elif command == "status":
                await cli_status(api)
            elif command == "wallet":
                await cli_wallet(api)
            elif command == "permissions":
                await cli_permissions(api)
            elif command == "movement":
                await cli_movement(api, args.movement_id)
            elif command == "chat":
                await cli_chat(api)
            else:
                print(f"❌ Unknown command: {command}")
                parser.print_help()
        except ApiError as e:
            print(f"❌ Error: {e}")
            if e.status_code == 401:
                print("Run `spendchat login` first.")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
