"""
Utility functions for the linenet library
"""
import asyncio
import signal
import sys
from typing import Callable, Any


def run_with_keyboard_interrupt(main_func: Callable[[], Any]) -> None:
    """
    Run an async main function with graceful KeyboardInterrupt handling.

    This function wraps asyncio.run() to catch KeyboardInterrupt (Ctrl+C) and
    provide a clean shutdown experience.

    Args:
        main_func: The async main function to run
    """
    try:
        asyncio.run(main_func())
    except KeyboardInterrupt:
        print("\n🛑 Interrupted by user (Ctrl+C)")
        print("Shutting down gracefully...")
        sys.exit(0)
    except Exception as e:
        print(f"❌ Error: {e}")
        sys.exit(1)


async def wait_for_shutdown(signals: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)) -> int:
    """
    Block until one of signals is received, then return its number.

    Use this to keep a server or client alive instead of spinning in a loop:

        async with await LineServer.create(8000, listener):
            await wait_for_shutdown()

    Signal handlers are removed again before returning.
    """
    loop = asyncio.get_running_loop()
    received: asyncio.Future = loop.create_future()

    def handler(signum: int) -> None:
        if not received.done():
            received.set_result(signum)

    for signum in signals:
        loop.add_signal_handler(signum, handler, signum)
    try:
        return await received
    finally:
        for signum in signals:
            loop.remove_signal_handler(signum)
