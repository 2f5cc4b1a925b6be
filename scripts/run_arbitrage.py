# scripts/run_arbitrage.py
"""
CLI entrypoint for the Kyber/Uniswap flash-loan arbitrage bot.

Configuration comes from the environment (or a .env file), see
BotConfig.from_env. PAPER mode only logs opportunities; set
EXECUTION_MODE=LIVE with PRIVATE_KEY and FLASHLOAN_ADDRESS to submit.

Usage:
    python scripts/run_arbitrage.py
"""

import asyncio
import signal
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from flash_arb.arbitrage.bot import run_arbitrage_bot
from flash_arb.arbitrage.config import BotConfig


async def main() -> None:
    config = BotConfig.from_env()
    stop_event = asyncio.Event()

    def _handle_sigint(signum, frame):
        """
        First Ctrl+C sets stop_event so the bot exits its loop cleanly.
        Second Ctrl+C raises KeyboardInterrupt to force exit.
        """
        if not stop_event.is_set():
            print("\n\n✅ Stopping arbitrage bot gracefully...")
            stop_event.set()
        else:
            print("\n\n⛔ Force exit.")
            raise KeyboardInterrupt()

    signal.signal(signal.SIGINT, _handle_sigint)

    await run_arbitrage_bot(config=config, stop_event=stop_event)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\n✅ Stopped arbitrage bot")
