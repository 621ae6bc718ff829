"""
Tests for the asset lifecycle: mint, unlock, transfer, restake, burn and queries.
"""
import unittest
import shutil
import tempfile
from geostake.db import DB
from geostake.errors import (
    NotFound,
    NotTokenOwner,
    InvalidCoordinates,
    AlreadyUnlocked,
    LocationMismatch,
    NotEligibleForTransfer,
    ValidationError,
)
from geostake.lifecycle import AssetLifecycle, ExecutionContext
from geostake.state import AssetRepository

ALICE = b'\x01' * 20
BOB = b'\x02' * 20
CAROL = b'\x03' * 20

LAT, LON = 40_748_817, -73_985_428


class LifecycleTestCase(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.db = DB(self.test_dir)
        self.lifecycle = AssetLifecycle(AssetRepository(self.db))

    def tearDown(self):
        self.db.close()
        shutil.rmtree(self.test_dir)

    def ctx(self, caller, sequence=10):
        return ExecutionContext(caller=caller, sequence=sequence)

    def mint(self, caller=ALICE, lat=LAT, lon=LON, sequence=10):
        return self.lifecycle.mint(self.ctx(caller, sequence), lat, lon, "Empire", "Observation deck")

    def snapshot(self):
        """All persisted key-value pairs."""
        return dict(self.db.iterator())


class TestMint(LifecycleTestCase):
    def test_ids_are_sequential_regardless_of_caller(self):
        self.assertEqual(self.mint(ALICE), 1)
        self.assertEqual(self.mint(BOB), 2)
        self.assertEqual(self.mint(ALICE), 3)
        self.assertEqual(self.lifecycle.get_last_token_id(), 3)

    def test_new_token_locked_and_owned_by_minter(self):
        token_id = self.mint(BOB, sequence=42)
        self.assertFalse(self.lifecycle.is_unlocked(token_id))
        self.assertEqual(self.lifecycle.get_owner(token_id), BOB)

        record = self.lifecycle.get_location(token_id)
        self.assertEqual(record.location, (LAT, LON))
        self.assertEqual(record.name, "Empire")
        self.assertEqual(record.description, "Observation deck")
        self.assertEqual(record.stake_sequence, 42)

    def test_invalid_coordinates(self):
        with self.assertRaises(InvalidCoordinates):
            self.mint(lat=90_000_001, lon=0)
        with self.assertRaises(InvalidCoordinates):
            self.mint(lat=0, lon=180_000_001)
        self.assertEqual(self.lifecycle.get_last_token_id(), 0)

    def test_non_integer_coordinates_rejected(self):
        for lat, lon in [(40_748_817.9, LON), (LAT, True), ("40748817", LON), (None, LON)]:
            with self.assertRaises(InvalidCoordinates):
                self.mint(lat=lat, lon=lon)
        self.assertEqual(self.lifecycle.get_last_token_id(), 0)

    def test_coordinates_checked_before_name(self):
        with self.assertRaises(InvalidCoordinates):
            self.lifecycle.mint(self.ctx(ALICE), 90_000_001, LON, "\u00e9" * 60, "")
        self.assertEqual(self.lifecycle.get_last_token_id(), 0)

    def test_boundary_coordinates_accepted(self):
        self.assertEqual(self.mint(lat=90_000_000, lon=180_000_000), 1)

    def test_oversized_name_rejected_without_allocating(self):
        with self.assertRaises(ValidationError):
            self.lifecycle.mint(self.ctx(ALICE), LAT, LON, "x" * 51, "")
        self.assertEqual(self.lifecycle.get_last_token_id(), 0)

    def test_token_uri_is_name(self):
        token_id = self.mint()
        self.assertEqual(self.lifecycle.get_token_uri(token_id), "Empire")
        with self.assertRaises(NotFound):
            self.lifecycle.get_token_uri(99)


class TestQueries(LifecycleTestCase):
    def test_out_of_range_ids_are_missing(self):
        self.mint()
        for token_id in [-1, 2 ** 64, True]:
            self.assertIsNone(self.lifecycle.get_owner(token_id))
            self.assertIsNone(self.lifecycle.get_location(token_id))
            self.assertFalse(self.lifecycle.has_user_unlocked(ALICE, token_id))
            with self.assertRaises(NotFound):
                self.lifecycle.is_unlocked(token_id)
            with self.assertRaises(NotFound):
                self.lifecycle.get_token_uri(token_id)

    def test_unusable_identity_has_not_unlocked(self):
        token_id = self.mint()
        self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        self.assertFalse(self.lifecycle.has_user_unlocked(b'', token_id))
        self.assertFalse(self.lifecycle.has_user_unlocked(b'\x01' * 256, token_id))

    def test_operations_on_out_of_range_ids(self):
        with self.assertRaises(NotFound):
            self.lifecycle.unlock(self.ctx(ALICE), -1, LAT, LON)
        with self.assertRaises(NotFound):
            self.lifecycle.transfer(self.ctx(ALICE), 2 ** 64, ALICE, BOB)
        with self.assertRaises(NotFound):
            self.lifecycle.restake(self.ctx(ALICE), -5, 0, 0)


class TestUnlock(LifecycleTestCase):
    def test_unlock_within_tolerance(self):
        token_id = self.mint()
        self.assertTrue(self.lifecycle.unlock(self.ctx(ALICE), token_id, 40_748_850, -73_985_400))
        self.assertTrue(self.lifecycle.is_unlocked(token_id))
        self.assertTrue(self.lifecycle.has_user_unlocked(ALICE, token_id))

    def test_unlock_keeps_location_and_sequence(self):
        token_id = self.mint(sequence=5)
        self.lifecycle.unlock(self.ctx(ALICE, sequence=9), token_id, LAT, LON)
        record = self.lifecycle.get_location(token_id)
        self.assertEqual(record.location, (LAT, LON))
        self.assertEqual(record.stake_sequence, 5)

    def test_delta_equal_to_tolerance_is_mismatch(self):
        token_id = self.mint()
        with self.assertRaises(LocationMismatch):
            self.lifecycle.unlock(self.ctx(ALICE), token_id, 40_748_917, -73_985_428)
        self.assertFalse(self.lifecycle.is_unlocked(token_id))
        self.assertFalse(self.lifecycle.has_user_unlocked(ALICE, token_id))

    def test_second_unlock_fails(self):
        token_id = self.mint()
        self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        with self.assertRaises(AlreadyUnlocked):
            self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)

    def test_only_owner_can_unlock(self):
        token_id = self.mint()
        with self.assertRaises(NotTokenOwner):
            self.lifecycle.unlock(self.ctx(BOB), token_id, LAT, LON)

    def test_missing_token(self):
        with self.assertRaises(NotFound):
            self.lifecycle.unlock(self.ctx(ALICE), 7, LAT, LON)

    def test_has_user_unlocked_defaults_false(self):
        self.assertFalse(self.lifecycle.has_user_unlocked(ALICE, 123))

    def test_is_unlocked_missing_token(self):
        with self.assertRaises(NotFound):
            self.lifecycle.is_unlocked(1)


class TestTransfer(LifecycleTestCase):
    def test_locked_token_not_transferable(self):
        token_id = self.mint()
        with self.assertRaises(NotEligibleForTransfer):
            self.lifecycle.transfer(self.ctx(ALICE), token_id, ALICE, BOB)
        self.assertEqual(self.lifecycle.get_owner(token_id), ALICE)

    def test_transfer_after_unlock(self):
        token_id = self.mint()
        self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        self.assertTrue(self.lifecycle.transfer(self.ctx(ALICE), token_id, ALICE, BOB))

        self.assertEqual(self.lifecycle.get_owner(token_id), BOB)
        self.assertTrue(self.lifecycle.is_unlocked(token_id))
        self.assertTrue(self.lifecycle.has_user_unlocked(ALICE, token_id))
        self.assertFalse(self.lifecycle.has_user_unlocked(BOB, token_id))

    def test_new_owner_can_transfer_again_while_unlocked(self):
        token_id = self.mint()
        self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        self.lifecycle.transfer(self.ctx(ALICE), token_id, ALICE, BOB)
        self.lifecycle.transfer(self.ctx(BOB), token_id, BOB, CAROL)
        self.assertEqual(self.lifecycle.get_owner(token_id), CAROL)

    def test_caller_must_be_sender(self):
        token_id = self.mint()
        self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        with self.assertRaises(NotTokenOwner):
            self.lifecycle.transfer(self.ctx(BOB), token_id, ALICE, BOB)

    def test_sender_must_hold_token(self):
        token_id = self.mint()
        self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        with self.assertRaises(NotTokenOwner):
            self.lifecycle.transfer(self.ctx(BOB), token_id, BOB, CAROL)
        self.assertEqual(self.lifecycle.get_owner(token_id), ALICE)

    def test_missing_token(self):
        with self.assertRaises(NotFound):
            self.lifecycle.transfer(self.ctx(ALICE), 1, ALICE, BOB)


class TestRestake(LifecycleTestCase):
    def test_restake_relocks_unlocked_token(self):
        token_id = self.mint(sequence=1)
        self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        self.lifecycle.restake(self.ctx(ALICE, sequence=20), token_id, 51_500_000, -120_000)

        record = self.lifecycle.get_location(token_id)
        self.assertTrue(record.locked)
        self.assertEqual(record.location, (51_500_000, -120_000))
        self.assertEqual(record.stake_sequence, 20)

        with self.assertRaises(NotEligibleForTransfer):
            self.lifecycle.transfer(self.ctx(ALICE), token_id, ALICE, BOB)

    def test_restake_allowed_while_locked(self):
        token_id = self.mint()
        self.assertTrue(self.lifecycle.restake(self.ctx(ALICE), token_id, 0, 0))
        self.assertFalse(self.lifecycle.is_unlocked(token_id))

    def test_unlock_uses_new_location(self):
        token_id = self.mint()
        self.lifecycle.restake(self.ctx(ALICE), token_id, 0, 0)
        with self.assertRaises(LocationMismatch):
            self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        self.lifecycle.unlock(self.ctx(ALICE), token_id, 50, -50)
        self.assertTrue(self.lifecycle.is_unlocked(token_id))

    def test_invalid_coordinates_leave_record_untouched(self):
        token_id = self.mint()
        self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        with self.assertRaises(InvalidCoordinates):
            self.lifecycle.restake(self.ctx(ALICE), token_id, 0, -180_000_001)
        record = self.lifecycle.get_location(token_id)
        self.assertEqual(record.location, (LAT, LON))
        self.assertFalse(record.locked)

    def test_non_integer_coordinates_leave_record_untouched(self):
        token_id = self.mint(sequence=3)
        for lat, lon in [(51.5, 0), (0, False)]:
            with self.assertRaises(InvalidCoordinates):
                self.lifecycle.restake(self.ctx(ALICE, sequence=8), token_id, lat, lon)
        record = self.lifecycle.get_location(token_id)
        self.assertEqual(record.location, (LAT, LON))
        self.assertEqual(record.stake_sequence, 3)

    def test_only_owner_can_restake(self):
        token_id = self.mint()
        with self.assertRaises(NotTokenOwner):
            self.lifecycle.restake(self.ctx(BOB), token_id, 0, 0)

    def test_missing_token(self):
        with self.assertRaises(NotFound):
            self.lifecycle.restake(self.ctx(ALICE), 3, 0, 0)


class TestBurn(LifecycleTestCase):
    def test_burn_removes_record_and_owner(self):
        token_id = self.mint()
        self.assertTrue(self.lifecycle.burn(self.ctx(ALICE), token_id))
        self.assertIsNone(self.lifecycle.get_owner(token_id))
        self.assertIsNone(self.lifecycle.get_location(token_id))
        with self.assertRaises(NotFound):
            self.lifecycle.is_unlocked(token_id)

    def test_unlock_history_survives_burn(self):
        token_id = self.mint()
        self.lifecycle.unlock(self.ctx(ALICE), token_id, LAT, LON)
        self.lifecycle.burn(self.ctx(ALICE), token_id)
        self.assertTrue(self.lifecycle.has_user_unlocked(ALICE, token_id))

    def test_ids_not_reused_after_burn(self):
        first = self.mint()
        self.lifecycle.burn(self.ctx(ALICE), first)
        self.assertEqual(self.mint(), 2)
        self.assertEqual(self.lifecycle.get_last_token_id(), 2)

    def test_only_owner_can_burn(self):
        token_id = self.mint()
        with self.assertRaises(NotTokenOwner):
            self.lifecycle.burn(self.ctx(BOB), token_id)
        self.assertEqual(self.lifecycle.get_owner(token_id), ALICE)

    def test_burn_twice(self):
        token_id = self.mint()
        self.lifecycle.burn(self.ctx(ALICE), token_id)
        with self.assertRaises(NotFound):
            self.lifecycle.burn(self.ctx(ALICE), token_id)


class TestFailedOperationsChangeNothing(LifecycleTestCase):
    def test_repeated_failures_are_identical(self):
        token_id = self.mint()
        unlocked_id = self.mint()
        self.lifecycle.unlock(self.ctx(ALICE), unlocked_id, LAT, LON)
        missing_id = 99
        before = self.snapshot()

        attempts = [
            (LocationMismatch, lambda: self.lifecycle.unlock(self.ctx(ALICE), token_id, 0, 0)),
            (NotTokenOwner, lambda: self.lifecycle.unlock(self.ctx(BOB), token_id, LAT, LON)),
            (NotEligibleForTransfer, lambda: self.lifecycle.transfer(self.ctx(ALICE), token_id, ALICE, BOB)),
            (InvalidCoordinates, lambda: self.lifecycle.restake(self.ctx(ALICE), token_id, 91_000_000, 0)),
            (NotTokenOwner, lambda: self.lifecycle.burn(self.ctx(BOB), token_id)),
            (InvalidCoordinates, lambda: self.mint(lat=-90_000_001)),
            (AlreadyUnlocked, lambda: self.lifecycle.unlock(self.ctx(ALICE), unlocked_id, LAT, LON)),
            (NotFound, lambda: self.lifecycle.unlock(self.ctx(ALICE), missing_id, LAT, LON)),
            (NotFound, lambda: self.lifecycle.transfer(self.ctx(ALICE), missing_id, ALICE, BOB)),
            (NotFound, lambda: self.lifecycle.restake(self.ctx(ALICE), missing_id, 0, 0)),
            (NotFound, lambda: self.lifecycle.burn(self.ctx(ALICE), missing_id)),
            (NotFound, lambda: self.lifecycle.burn(self.ctx(ALICE), -1)),
        ]
        for expected, attempt in attempts:
            for _ in range(2):
                with self.assertRaises(expected):
                    attempt()
                self.assertEqual(self.snapshot(), before)


if __name__ == '__main__':
    unittest.main()
