"""
LevelDB wrapper used as the registry's key-value persistence.
"""
import plyvel
import logging
from typing import Optional, Iterator, Iterable
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class DB:
    def __init__(self, db_path: str, create_if_missing: bool = True,
                 write_buffer_size: int = 4 * 1024 * 1024,
                 max_open_files: int = 1000):
        """
        Open (or create) a LevelDB database.

        Args:
            db_path: Path to database directory
            create_if_missing: Create database if it doesn't exist
            write_buffer_size: Size of write buffer
            max_open_files: Maximum number of open files
        """
        self.path = db_path
        try:
            self._db = plyvel.DB(
                db_path,
                create_if_missing=create_if_missing,
                write_buffer_size=write_buffer_size,
                max_open_files=max_open_files,
            )
            self._closed = False
            logger.info(f"Database opened at {db_path}")
        except Exception as e:
            logger.error(f"Failed to open database at {db_path}: {e}")
            raise

    def _check_open(self):
        if self._closed:
            raise RuntimeError("Database is closed")

    def get(self, key: bytes) -> Optional[bytes]:
        """
        Get value by key.

        Returns None if key doesn't exist.
        """
        self._check_open()
        try:
            return self._db.get(key)
        except Exception as e:
            logger.error(f"Error getting key {key!r}: {e}")
            raise

    def put(self, key: bytes, value: bytes):
        """Put a single key-value pair."""
        self._check_open()
        try:
            self._db.put(key, value)
        except Exception as e:
            logger.error(f"Error putting key {key!r}: {e}")
            raise

    @contextmanager
    def write_batch(self):
        """
        Context manager for atomic batch writes.

        Nothing is written if the block raises.

        Example:
            with db.write_batch() as batch:
                batch.put(b'key1', b'value1')
                batch.delete(b'key2')
        """
        self._check_open()

        batch = self._db.write_batch(transaction=True)
        try:
            with batch:
                yield batch
        except Exception as e:
            logger.error(f"Error in batch write: {e}")
            raise

    def apply(self, puts: dict, deletes: Iterable[bytes]):
        """Write a set of puts and deletes as one atomic batch."""
        with self.write_batch() as batch:
            for key in deletes:
                batch.delete(key)
            for key, value in puts.items():
                batch.put(key, value)

    def iterator(self, prefix: Optional[bytes] = None) -> Iterator[tuple[bytes, bytes]]:
        """Iterate (key, value) pairs whose key starts with prefix, or all pairs."""
        self._check_open()
        try:
            if prefix:
                return self._db.iterator(prefix=prefix)
            return self._db.iterator()
        except Exception as e:
            logger.error(f"Error creating iterator: {e}")
            raise

    def count_prefix(self, prefix: bytes) -> int:
        """Count keys with a given prefix without decoding values."""
        self._check_open()
        count = 0
        for _ in self._db.iterator(prefix=prefix, include_value=False):
            count += 1
        return count

    def close(self):
        """Close the database."""
        if not self._closed:
            try:
                self._db.close()
                self._closed = True
                logger.info("Database closed")
            except Exception as e:
                logger.error(f"Error closing database: {e}")
                raise

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
