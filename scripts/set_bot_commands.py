"""
Register (or remove) the bot's command list with Telegram.

The command menu shown next to the chat input comes from setMyCommands; it is
not derived from the handlers, so run this after changing BOT_COMMANDS.

Usage:
    python scripts/set_bot_commands.py
    python scripts/set_bot_commands.py --scope all_group_chats
    python scripts/set_bot_commands.py --delete
"""
import sys
sys.stdout.reconfigure(encoding='utf-8')
from dotenv import load_dotenv
load_dotenv()

import argparse

from coffee_bot.config import BOT_COMMANDS
from coffee_bot.telegram_client import TelegramClient, TelegramError

SCOPES = ["default", "all_private_chats", "all_group_chats", "all_chat_administrators"]


def main() -> int:
    parser = argparse.ArgumentParser(description="Register bot commands with Telegram")
    parser.add_argument(
        "--scope",
        choices=SCOPES,
        default="default",
        help="BotCommandScope type (default: default)",
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Remove the command list for the scope instead of setting it",
    )
    args = parser.parse_args()

    client = TelegramClient()
    if not client.is_configured():
        print("Error: BOT_TOKEN is not set")
        return 1

    scope = {"type": args.scope}
    try:
        if args.delete:
            client.delete_my_commands(scope=scope)
            print(f"Deleted commands for scope {args.scope}")
        else:
            client.set_my_commands(BOT_COMMANDS, scope=scope)
            print(f"Registered {len(BOT_COMMANDS)} commands for scope {args.scope}:")
            for cmd in BOT_COMMANDS:
                print(f"  /{cmd['command']} - {cmd['description']}")
    except TelegramError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
