"""
Example client: sends each line typed on stdin and prints whatever the server sends back.

    python examples/console_client.py [examples/config.yaml]

Type "exit" to quit.
"""
import asyncio
import sys

from colorama import Fore, Style

from linenet import LineClient, ClientListener, LineError, load_config, setup_logging, run_with_keyboard_interrupt


class Printer(ClientListener):

    async def message_received(self, message: str) -> None:
        print(Fore.CYAN + message + Style.RESET_ALL)

    async def disconnected(self) -> None:
        print(Fore.RED + "Disconnected" + Style.RESET_ALL)


async def main():
    config = load_config(sys.argv[1] if len(sys.argv) > 1 else "examples/config.yaml")
    logger = setup_logging(config)
    client = LineClient.from_config(config, listener=Printer(), logger=logger)
    await client.reconnect()

    async with client:
        while client.is_connected():
            # stdin is blocking, keep it off the event loop
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line or line.strip().lower() == "exit":
                break
            try:
                await client.send(line.rstrip("\r\n"))
            except LineError as e:
                print(f"Send failed: {e}")
                break


if __name__ == "__main__":
    run_with_keyboard_interrupt(main)
