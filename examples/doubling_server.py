"""
Example server: answers every line with the same text twice.

    python examples/doubling_server.py [examples/config.yaml]

Then connect with examples/console_client.py, or `nc 127.0.0.1 8000`.
"""
import sys
from typing import Optional

from colorama import Fore, Style

from linenet import LineServer, ServerListener, load_config, setup_logging, run_with_keyboard_interrupt, wait_for_shutdown


class Doubler(ServerListener):

    async def message_received(self, session_id: str, message: str) -> Optional[str]:
        print(f"Received: {message} from {session_id}")
        return message + message

    async def client_connected(self, session_id: str) -> None:
        print(Fore.GREEN + f"{session_id} connected" + Style.RESET_ALL)

    async def client_disconnected(self, session_id: str) -> None:
        print(Fore.RED + f"{session_id} disconnected" + Style.RESET_ALL)


async def main():
    config = load_config(sys.argv[1] if len(sys.argv) > 1 else "examples/config.yaml")
    logger = setup_logging(config)
    server = LineServer.from_config(config, listener=Doubler(), logger=logger)
    await server.open(config.port)
    async with server:
        await wait_for_shutdown()


if __name__ == "__main__":
    run_with_keyboard_interrupt(main)
