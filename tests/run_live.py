"""Live smoke run — messenger against a real nwaku node (WAKU_* environment)."""

import asyncio
import os
import sys
import time

# Add src to path for development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from waku_messenger import WakuClient, WakuConfig

passed = 0
failed = 0

def check(condition, msg):
    global passed, failed
    if condition:
        print(f"  PASS: {msg}")
        passed += 1
    else:
        print(f"  FAIL: {msg}")
        failed += 1


async def main():
    config = WakuConfig.from_env()
    client = WakuClient(config)

    print("\n=== Connect ===")
    started = time.monotonic()
    await client.init()
    check(client.connected, f"Connected to {config.node_url} in {time.monotonic() - started:.1f}s")

    print("\n=== Subscribe ===")
    events = asyncio.Queue()
    topic = await client.subscribe("random", events.put_nowait)
    check(topic.startswith("/"), f"Subscribed to {topic}")

    print("\n=== Send + Receive ===")
    sent = await client.send_message({"amount": "1", "token": "ETH"}, topic, "room-1")
    check(sent, "Light push accepted the message")
    try:
        event = await asyncio.wait_for(events.get(), timeout=30)
        check(event.body == {"amount": "1", "token": "ETH"}, f"Body round-tripped: {event.body}")
        check(event.room_id == "room-1", f"Room id: {event.room_id}")
    except asyncio.TimeoutError:
        check(False, "Received our own message within 30s")

    print("\n=== Unsubscribe ===")
    check(await client.unsubscribe(topic), f"Unsubscribed from {topic}")
    check(not await client.unsubscribe(topic), "Second unsubscribe is a no-op")

    await client.stop()

    print(f"\n{'='*50}")
    print(f"Results: {passed} passed, {failed} failed out of {passed + failed}")
    print("=" * 50)
    sys.exit(1 if failed > 0 else 0)


asyncio.run(main())
