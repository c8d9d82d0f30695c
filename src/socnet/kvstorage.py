import os
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .errors import StorageError

# Third-party libraries for LevelDB and LMDB
try:
    import plyvel
    HAS_PLYVEL = True
except ImportError:
    HAS_PLYVEL = False

try:
    import lmdb
    HAS_LMDB = True
except ImportError:
    HAS_LMDB = False

logger = logging.getLogger(__name__)


class KVStorage(ABC):
    """
    An abstract interface for key-value storage.
    Besides single and batch reads/writes, every backend hands out
    transactions through begin(): reads inside a write transaction see its
    own pending writes, and the writes become visible all at once on a clean
    exit (or not at all when the block raises).
    """

    @abstractmethod
    def put(self, key: bytes, value: bytes) -> None:
        """Store key-value pair in the DB."""
        pass

    @abstractmethod
    def put_batch(self, items: Dict[bytes, bytes]) -> None:
        """Store multiple key-value pairs atomically."""
        pass

    @abstractmethod
    def write_batch(self, items: Dict[bytes, Optional[bytes]]) -> None:
        """
        Apply puts and deletes atomically.
        A value of None deletes the key.
        """
        pass

    @abstractmethod
    def get(self, key: bytes) -> Optional[bytes]:
        """Retrieve the value for 'key' if it exists, else None."""
        pass

    @abstractmethod
    def get_batch(self, keys: List[bytes]) -> Dict[bytes, Optional[bytes]]:
        """
        Retrieve multiple keys at once.
        Return a dict mapping each key -> its value or None if missing.
        """
        pass

    @abstractmethod
    def delete(self, key: bytes) -> None:
        """Remove 'key' if present."""
        pass

    @abstractmethod
    def begin(self, write: bool = False):
        """
        Open a transaction, to be used as a context manager.
        The object it yields offers get(key), put(key, value) and delete(key).
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the storage."""
        pass


class BufferedTransaction:
    """
    Transaction for backends without native multi-key transactions.
    Writes are buffered and handed to storage.write_batch() on commit; the
    storage lock is held for the whole block, so units of work in the same
    process never interleave.
    """
    def __init__(self, storage, write=False):
        self._storage = storage
        self._write = write
        self._pending: Dict[bytes, Optional[bytes]] = {}

    def __enter__(self):
        self._storage._lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None and self._write and self._pending:
                self._storage.write_batch(self._pending)
        finally:
            self._pending = {}
            self._storage._lock.release()
        return False

    def get(self, key: bytes) -> Optional[bytes]:
        if key in self._pending:
            return self._pending[key]
        return self._storage.get(key)

    def put(self, key: bytes, value: bytes) -> None:
        self._check_writable()
        self._pending[key] = value

    def delete(self, key: bytes) -> None:
        self._check_writable()
        self._pending[key] = None

    def _check_writable(self):
        if not self._write:
            raise StorageError("Cannot write inside a read-only transaction.")


class MemoryStorage(KVStorage):
    """
    Dict-backed storage living in the current process.
    Useful for tests and throwaway graphs; nothing is persisted.
    """
    def __init__(self):
        self._data: Dict[bytes, bytes] = {}
        self._lock = threading.RLock()

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._data[key] = value

    def put_batch(self, items: Dict[bytes, bytes]) -> None:
        with self._lock:
            self._data.update(items)

    def write_batch(self, items: Dict[bytes, Optional[bytes]]) -> None:
        with self._lock:
            for k, v in items.items():
                if v is None:
                    self._data.pop(k, None)
                else:
                    self._data[k] = v

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def get_batch(self, keys: List[bytes]) -> Dict[bytes, Optional[bytes]]:
        with self._lock:
            return {k: self._data.get(k) for k in keys}

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._data.pop(key, None)

    def begin(self, write: bool = False):
        return BufferedTransaction(self, write=write)

    def close(self) -> None:
        with self._lock:
            self._data.clear()


class LevelDBStorage(KVStorage):
    """
    A LevelDB-based implementation using plyvel.
    Commits go through a single write_batch(); LevelDB has no multi-key
    transactions, so units of work are serialized by a process-local lock.
    """
    def __init__(self, db_path: str, create_if_missing=True):
        if not HAS_PLYVEL:
            raise ImportError("plyvel is not installed. Please install it for LevelDB support.")

        self._db = plyvel.DB(db_path, create_if_missing=create_if_missing)
        self._lock = threading.RLock()
        logger.debug("Opened LevelDB storage at %s", db_path)

    def put(self, key: bytes, value: bytes) -> None:
        self._db.put(key, value)

    def put_batch(self, items: Dict[bytes, bytes]) -> None:
        with self._db.write_batch(transaction=True) as wb:
            for k, v in items.items():
                wb.put(k, v)

    def write_batch(self, items: Dict[bytes, Optional[bytes]]) -> None:
        try:
            with self._db.write_batch(transaction=True) as wb:
                for k, v in items.items():
                    if v is None:
                        wb.delete(k)
                    else:
                        wb.put(k, v)
        except plyvel.Error as exc:
            raise StorageError(f"LevelDB write failed: {exc}") from exc

    def get(self, key: bytes) -> Optional[bytes]:
        return self._db.get(key)

    def get_batch(self, keys: List[bytes]) -> Dict[bytes, Optional[bytes]]:
        # LevelDB does not have a "multi-get" call, so we do them individually.
        results = {}
        for k in keys:
            results[k] = self._db.get(k)
        return results

    def delete(self, key: bytes) -> None:
        self._db.delete(key)

    def begin(self, write: bool = False):
        return BufferedTransaction(self, write=write)

    def close(self) -> None:
        self._db.close()


class LMDBTransaction:
    """
    Thin wrapper over a native LMDB transaction that reports backend
    failures as StorageError. Read transactions are always aborted on exit.
    """
    def __init__(self, env, write=False):
        self._env = env
        self._write = write
        self._txn = None

    def __enter__(self):
        try:
            self._txn = self._env.begin(write=self._write)
        except lmdb.Error as exc:
            raise StorageError(f"Could not begin LMDB transaction: {exc}") from exc
        return self

    def __exit__(self, exc_type, exc, tb):
        txn, self._txn = self._txn, None
        if exc_type is not None or not self._write:
            txn.abort()
            return False
        try:
            txn.commit()
        except lmdb.Error as commit_exc:
            raise StorageError(f"LMDB commit failed: {commit_exc}") from commit_exc
        return False

    def get(self, key: bytes) -> Optional[bytes]:
        return self._txn.get(key)

    def put(self, key: bytes, value: bytes) -> None:
        try:
            self._txn.put(key, value)
        except lmdb.Error as exc:
            raise StorageError(f"LMDB put failed: {exc}") from exc

    def delete(self, key: bytes) -> None:
        try:
            self._txn.delete(key)
        except lmdb.Error as exc:
            raise StorageError(f"LMDB delete failed: {exc}") from exc


class LMDBStorage(KVStorage):
    """
    An LMDB-based implementation using python-lmdb.
    Transactions are native: one writer at a time (across processes too),
    readers see the last committed snapshot.
    """
    def __init__(self, db_path: str, map_size=1024 * 1024 * 100, **kwargs):
        """
        :param db_path: directory path for LMDB environment
        :param map_size: max size of the database in bytes
        :param kwargs: additional keyword args for lmdb.open()
        """
        if not HAS_LMDB:
            raise ImportError("python-lmdb is not installed. Please install it for LMDB support.")

        os.makedirs(db_path, exist_ok=True)
        self._env = lmdb.open(db_path, map_size=map_size, **kwargs)
        logger.debug("Opened LMDB environment at %s (map_size=%d)", db_path, map_size)

    def put(self, key: bytes, value: bytes) -> None:
        with self.begin(write=True) as txn:
            txn.put(key, value)

    def put_batch(self, items: Dict[bytes, bytes]) -> None:
        with self.begin(write=True) as txn:
            for k, v in items.items():
                txn.put(k, v)

    def write_batch(self, items: Dict[bytes, Optional[bytes]]) -> None:
        with self.begin(write=True) as txn:
            for k, v in items.items():
                if v is None:
                    txn.delete(k)
                else:
                    txn.put(k, v)

    def get(self, key: bytes) -> Optional[bytes]:
        with self.begin(write=False) as txn:
            return txn.get(key)

    def get_batch(self, keys: List[bytes]) -> Dict[bytes, Optional[bytes]]:
        results = {}
        with self.begin(write=False) as txn:
            for k in keys:
                results[k] = txn.get(k)
        return results

    def delete(self, key: bytes) -> None:
        with self.begin(write=True) as txn:
            txn.delete(key)

    def begin(self, write: bool = False):
        return LMDBTransaction(self._env, write=write)

    def close(self) -> None:
        self._env.close()
