import threading
import unittest

from raffle.errors import (
    InsufficientEntry,
    RandomnessRequestFailed,
    RoundNotOpen,
    SettlementNotPending,
    UpkeepNotNeeded,
)
from raffle.events import DrawRequested, Entered, EventBus
from raffle.ledger import InMemoryLedger
from raffle.randomness import LocalRandomnessCoordinator
from raffle.randomness.base import RandomnessClient
from raffle.round import Raffle
from raffle.types import RaffleSnapshot, RoundState


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenRandomness(RandomnessClient):
    def __init__(self, exc: Exception) -> None:
        super().__init__()
        self.exc = exc
        self.calls = 0

    def request_random(self, count: int) -> int:
        self.calls += 1
        raise self.exc


class RaffleRoundTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.randomness = LocalRandomnessCoordinator()
        self.ledger = InMemoryLedger()
        self.events = []
        bus = EventBus()
        bus.subscribe(self.events.append)
        self.raffle = Raffle(100, 60, self.randomness, self.ledger, events=bus, clock=self.clock)

    def _fill(self, *players: str) -> None:
        for player in players:
            self.raffle.enter(player, 100)

    def test_initial_state(self) -> None:
        raffle = self.raffle
        self.assertEqual(raffle.state, RoundState.OPEN)
        self.assertEqual(raffle.participant_count, 0)
        self.assertEqual(raffle.pooled_balance, 0)
        self.assertIsNone(raffle.recent_winner)
        self.assertIsNone(raffle.pending_request_id)
        self.assertEqual(raffle.last_draw_timestamp, 1000.0)
        self.assertEqual(raffle.entrance_fee, 100)
        self.assertEqual(raffle.interval_seconds, 60)

    def test_entries_accumulate_in_call_order(self) -> None:
        self.raffle.enter("alice", 100)
        self.raffle.enter("bob", 250)
        self.raffle.enter("alice", 100)

        self.assertEqual(self.raffle.participant_count, 3)
        self.assertEqual(self.raffle.pooled_balance, 450)
        self.assertEqual(
            [self.raffle.get_participant(i) for i in range(3)], ["alice", "bob", "alice"]
        )
        self.assertEqual(
            self.events,
            [Entered("alice", 100), Entered("bob", 250), Entered("alice", 100)],
        )

    def test_entry_below_fee_is_rejected(self) -> None:
        self.raffle.enter("alice", 100)

        with self.assertRaises(InsufficientEntry) as ctx:
            self.raffle.enter("bob", 99)

        self.assertEqual(ctx.exception.entrance_fee, 100)
        self.assertEqual(self.raffle.participant_count, 1)
        self.assertEqual(self.raffle.pooled_balance, 100)

    def test_empty_player_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.raffle.enter("", 100)
        self.assertEqual(self.raffle.participant_count, 0)

    def test_participant_index_out_of_range(self) -> None:
        self._fill("alice")
        with self.assertRaises(IndexError):
            self.raffle.get_participant(1)
        with self.assertRaises(IndexError):
            self.raffle.get_participant(-1)

    def test_start_draw_when_not_due(self) -> None:
        self._fill("alice", "bob")
        self.clock.advance(60)

        with self.assertRaises(UpkeepNotNeeded) as ctx:
            self.raffle.start_draw()

        self.assertEqual(ctx.exception.balance, 200)
        self.assertEqual(ctx.exception.participant_count, 2)
        self.assertEqual(ctx.exception.state, RoundState.OPEN)
        self.assertEqual(self.raffle.state, RoundState.OPEN)
        self.assertEqual(self.raffle.pooled_balance, 200)
        self.assertEqual(self.randomness.pending_requests(), ())

    def test_start_draw_without_players(self) -> None:
        self.clock.advance(120)

        with self.assertRaises(UpkeepNotNeeded) as ctx:
            self.raffle.start_draw()

        self.assertEqual(ctx.exception.participant_count, 0)
        self.assertEqual(self.raffle.state, RoundState.OPEN)

    def test_start_draw_moves_to_drawing_and_blocks_entries(self) -> None:
        self._fill("alice", "bob")
        self.clock.advance(61)

        request_id = self.raffle.start_draw()

        self.assertEqual(request_id, 1)
        self.assertEqual(self.raffle.state, RoundState.DRAWING)
        self.assertEqual(self.raffle.pending_request_id, 1)
        self.assertEqual(self.randomness.pending_requests(), (1,))
        self.assertEqual(self.events[-1], DrawRequested(request_id=1))

        with self.assertRaises(RoundNotOpen):
            self.raffle.enter("carol", 100)
        self.assertEqual(self.raffle.participant_count, 2)
        self.assertEqual(self.raffle.pooled_balance, 200)

    def test_fee_is_checked_before_state(self) -> None:
        self._fill("alice")
        self.clock.advance(61)
        self.raffle.start_draw()

        with self.assertRaises(InsufficientEntry):
            self.raffle.enter("bob", 1)

    def test_second_start_draw_is_rejected(self) -> None:
        self._fill("alice")
        self.clock.advance(61)
        self.raffle.start_draw()

        with self.assertRaises(UpkeepNotNeeded) as ctx:
            self.raffle.start_draw()

        self.assertEqual(ctx.exception.state, RoundState.DRAWING)
        self.assertEqual(self.raffle.pending_request_id, 1)
        self.assertEqual(self.randomness.pending_requests(), (1,))

    def test_failed_randomness_request_reopens_round(self) -> None:
        randomness = BrokenRandomness(ConnectionError("provider down"))
        raffle = Raffle(100, 60, randomness, self.ledger, clock=self.clock)
        raffle.enter("alice", 100)
        self.clock.advance(61)

        with self.assertRaises(RandomnessRequestFailed):
            raffle.start_draw()

        self.assertEqual(randomness.calls, 1)
        self.assertEqual(raffle.state, RoundState.OPEN)
        self.assertIsNone(raffle.pending_request_id)
        raffle.enter("bob", 100)
        self.assertEqual(raffle.participant_count, 2)

    def test_concurrent_draw_starts_issue_one_request(self) -> None:
        self._fill("alice", "bob")
        self.clock.advance(61)
        results = []
        barrier = threading.Barrier(8)

        def attempt() -> None:
            barrier.wait()
            try:
                results.append(self.raffle.start_draw())
            except UpkeepNotNeeded:
                results.append(None)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(sorted(r for r in results if r is not None), [1])
        self.assertEqual(results.count(None), 7)
        self.assertEqual(self.randomness.pending_requests(), (1,))

    def test_concurrent_entries_are_all_counted(self) -> None:
        def enter_many(name: str) -> None:
            for _ in range(50):
                self.raffle.enter(name, 100)

        threads = [threading.Thread(target=enter_many, args=(f"p{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(self.raffle.participant_count, 200)
        self.assertEqual(self.raffle.pooled_balance, 20000)

    def test_negative_configuration_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Raffle(-1, 60, LocalRandomnessCoordinator(), self.ledger)
        with self.assertRaises(ValueError):
            Raffle(100, -5, LocalRandomnessCoordinator(), self.ledger)

    def test_restore_from_snapshot(self) -> None:
        snapshot = RaffleSnapshot(
            state=RoundState.DRAWING,
            participants=("alice", "bob"),
            pooled_balance=200,
            entrance_fee=100,
            interval_seconds=60,
            last_draw_timestamp=500.0,
            recent_winner="carol",
            pending_request_id=7,
        )

        raffle = Raffle(100, 60, LocalRandomnessCoordinator(), self.ledger, snapshot=snapshot)

        self.assertEqual(raffle.snapshot(), snapshot)
        with self.assertRaises(RoundNotOpen):
            raffle.enter("dave", 100)

    def test_restore_with_different_fee_fails(self) -> None:
        snapshot = self.raffle.snapshot()

        with self.assertRaises(ValueError):
            Raffle(200, 60, LocalRandomnessCoordinator(), self.ledger, snapshot=snapshot)

    def test_snapshot_is_detached(self) -> None:
        self._fill("alice")
        snapshot = self.raffle.snapshot()
        self._fill("bob")

        self.assertEqual(snapshot.participants, ("alice",))
        self.assertEqual(snapshot.pooled_balance, 100)


class RoundPersistenceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.randomness = LocalRandomnessCoordinator()
        self.saved = []
        self.failing = False
        self.events = []
        bus = EventBus()
        bus.subscribe(self.events.append)
        self.raffle = Raffle(
            100, 60, self.randomness, InMemoryLedger(), events=bus, clock=self.clock, persist=self._save
        )

    def _save(self, snapshot: RaffleSnapshot) -> None:
        if self.failing:
            raise OSError("database unavailable")
        self.saved.append(snapshot)

    def test_each_transition_is_saved_before_it_is_announced(self) -> None:
        self.raffle.enter("alice", 100)
        self.clock.advance(61)
        request_id = self.raffle.start_draw()

        self.assertEqual(self.saved[0].participants, ("alice",))
        self.assertEqual(self.saved[-1].state, RoundState.DRAWING)
        self.assertEqual(self.saved[-1].pending_request_id, request_id)
        self.assertEqual(self.events, [Entered("alice", 100), DrawRequested(request_id)])

    def test_failed_save_undoes_entry(self) -> None:
        self.raffle.enter("alice", 100)
        self.failing = True

        with self.assertRaises(OSError):
            self.raffle.enter("bob", 100)

        self.assertEqual(self.raffle.snapshot().participants, ("alice",))
        self.assertEqual(self.raffle.pooled_balance, 100)
        self.assertEqual(self.events, [Entered("alice", 100)])

    def test_failed_save_undoes_draw_start(self) -> None:
        self.raffle.enter("alice", 100)
        self.clock.advance(61)
        self.failing = True

        with self.assertRaises(OSError):
            self.raffle.start_draw()

        self.assertEqual(self.raffle.state, RoundState.OPEN)
        self.assertIsNone(self.raffle.pending_request_id)
        self.failing = False
        orphan = self.randomness.pending_requests()[0]
        with self.assertRaises(SettlementNotPending):
            self.randomness.fulfill(orphan, [0])
        self.assertEqual(self.raffle.participant_count, 1)


if __name__ == "__main__":
    unittest.main()
