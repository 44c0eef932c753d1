#!/usr/bin/env python3
"""Performance test for buzz handling under contention.

This script measures how long the GameEngine takes to apply a burst of
simultaneous buzzes, first with every thread hammering one room and then
with the same threads spread across separate rooms.  Each room has its own
lock, so the spread case should not be slower than the single-room case.
"""

import threading
import time
from src.buzzer.game_engine import GameEngine
from src.buzzer.room_store import RoomStore


class NullBroadcaster(object):
    """Broadcaster that drops every snapshot."""

    def publish(self, code, snapshot):
        pass


def setup_rooms(num_rooms, players_per_room):
    """Create started rooms full of waiting players."""
    engine = GameEngine(RoomStore(), NullBroadcaster())
    codes = []
    for r in range(num_rooms):
        room = engine.create_room(f"room{r}")
        for p in range(players_per_room):
            engine.join_room(room.code, f"p{p}")
        engine.start(room.code)
        codes.append(room.code)
    return engine, codes


def benchmark_scenario(name, num_rooms, players_per_room, iterations=20):
    """Benchmark one burst layout."""
    print(f"\n{name}:")
    print(f"  Rooms: {num_rooms}")
    print(f"  Players per room: {players_per_room}")

    total = 0.0
    for _ in range(iterations):
        engine, codes = setup_rooms(num_rooms, players_per_room)
        barrier = threading.Barrier(num_rooms * players_per_room + 1)

        def press(code, player):
            barrier.wait()
            engine.buzz(code, player)

        threads = [
            threading.Thread(target=press, args=(code, f"p{p}"))
            for code in codes
            for p in range(players_per_room)
        ]
        for t in threads:
            t.start()

        barrier.wait()
        start_time = time.perf_counter()
        for t in threads:
            t.join()
        total += time.perf_counter() - start_time

        for code in codes:
            room = engine.store.get_room(code)
            assert len(room.buzzed_order) == players_per_room
            assert room.first_buzzer == room.buzzed_order[0][0]

    buzzes = num_rooms * players_per_room
    avg_time = total / iterations
    print(f"  Average burst time: {avg_time*1000:.2f}ms")
    print(f"  Average per buzz: {avg_time*1000000/buzzes:.1f}μs")

    # Check it stays well under network latency
    if avg_time / buzzes < 0.001:
        print(f"  ✅ FAST (< 1ms per buzz)")
    elif avg_time / buzzes < 0.01:
        print(f"  ⚠️  ACCEPTABLE (< 10ms per buzz)")
    else:
        print(f"  ❌ SLOW (> 10ms per buzz)")

    return avg_time


def main():
    """Run buzz contention benchmarks."""
    print("=== Buzzer GameEngine Contention Benchmark ===")
    print("Target: Much faster than network latency (10-100ms)")

    benchmark_scenario("One Room - 64 Players", 1, 64)
    benchmark_scenario("16 Rooms - 4 Players Each", 16, 4)
    benchmark_scenario("64 Rooms - 1 Player Each", 64, 1)

    print("\n=== Summary ===")
    print("Every burst must produce exactly one first buzzer per room")
    print("Spreading buzzes across rooms should not be slower than one busy room")


if __name__ == "__main__":
    main()
