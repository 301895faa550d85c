#!/usr/bin/env python3
"""
Startup script for the coffee bot webhook.

Usage:
    # Run on the default port
    python run_bot.py

    # Run with custom port
    python run_bot.py --port 8001

    # Run with reload for development
    python run_bot.py --reload

Telegram must be pointed at https://<host>/api/bot with setWebhook.
"""

import argparse
import os


def run_bot(host: str = "0.0.0.0", port: int = None, reload: bool = False) -> None:
    """Run the webhook app under uvicorn."""
    bot_port = port or int(os.getenv("PORT", "8000"))

    print(f"\n{'=' * 50}")
    print("Starting: Coffee Bot")
    print(f"Port:     {bot_port}")
    print(f"Telegram: {'live' if os.getenv('BOT_TOKEN') else 'mock'}")
    print(f"Sheet:    {os.getenv('SHEET_ID') or 'N/A'}")
    print(f"{'=' * 50}\n")

    import uvicorn

    uvicorn.run(
        "coffee_bot.main:app",
        host=host,
        port=bot_port,
        reload=reload,
    )


def main():
    parser = argparse.ArgumentParser(description="Run the coffee bot webhook")
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="Port to run on (default: $PORT or 8000)",
    )
    parser.add_argument(
        "--reload",
        "-r",
        action="store_true",
        help="Enable auto-reload for development",
    )
    args = parser.parse_args()

    # .env must be loaded before the printout reads BOT_TOKEN / SHEET_ID
    from dotenv import load_dotenv
    load_dotenv()

    run_bot(host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
