#!/usr/bin/env python
"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
WsQueue, a product of Garudex Labs

Demo of the queue-backed WebSocket client.

Starts a local echo server, then walks through sending, receiving,
buffering, and what receivers see once the server closes the connection.
"""

import asyncio

from websockets.asyncio.server import serve

from wsqueue import TerminatedError, WebSocketClient
from wsqueue.config import load_config
from wsqueue.logging_config import get_logger, setup_logging_from_config


async def echo(connection):
    async for message in connection:
        if message == "goodbye":
            await connection.close(1000, "see you")
            return
        await connection.send(message)


async def run_demo(config):
    """Run the client against an in-process echo server."""
    logger = get_logger("demo")

    async with serve(echo, "127.0.0.1", 0) as server:
        port = next(iter(server.sockets)).getsockname()[1]
        url = f"ws://127.0.0.1:{port}/"

        print("=" * 60)
        print("WsQueue Echo Client Demo")
        print("=" * 60)
        print(f"\nEcho server: {url}\n")

        client = WebSocketClient.from_config(config)

        # Example 1: Connect, send, receive
        print("1. Send and receive:")
        await client.connect(url)
        client.send("Hello!")
        print(f"   received: {await client.receive()!r}")

        # Example 2: Messages buffer until someone receives them
        print("\n2. Buffering:")
        for word in ("one", "two", "three"):
            client.send(word)
        await asyncio.sleep(0.1)
        print(f"   buffered messages: {client.data_available}")
        while client.data_available:
            print(f"   received: {await client.receive()!r}")

        # Example 3: Receivers waiting before anything arrives are served in order
        print("\n3. Waiting receivers:")
        waiting = [asyncio.create_task(client.receive()) for _ in range(2)]
        await asyncio.sleep(0)
        print(f"   pending receivers: {client.pending_receivers}")
        client.send("first")
        client.send("second")
        print(f"   results: {await asyncio.gather(*waiting)}")

        # Example 4: The server closes; pending and later receives fail
        print("\n4. Server-initiated close:")
        waiting = asyncio.create_task(client.receive())
        client.send("goodbye")
        try:
            await waiting
        except TerminatedError as e:
            print(f"   receiver failed: {e.event}")
        logger.info("demo_connection_ended", close_event=str(client.close_event))

        # Example 5: Context manager disconnects on exit
        print("\n5. Context manager:")
        async with WebSocketClient.from_config(config) as scoped:
            await scoped.connect(url)
            scoped.send("scoped")
            print(f"   received: {await scoped.receive()!r}")
        print(f"   after exit: {scoped.close_event}")

        print("\n" + "=" * 60)
        print("Demo completed successfully!")
        print("=" * 60)


def main():
    """Run echo client demo."""
    # Reads ~/.wsqueue/config.yaml when present
    config = load_config()
    setup_logging_from_config(config.logging)
    asyncio.run(run_demo(config))


if __name__ == "__main__":
    main()
