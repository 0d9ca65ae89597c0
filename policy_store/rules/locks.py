# (c) Copyright Datacraft, 2026
"""Per-key in-process locks with a bounded wait."""
import logging
import threading
from contextlib import contextmanager

from policy_store.exceptions import Contention

logger = logging.getLogger(__name__)


class _Entry:
	__slots__ = ('lock', 'holders')

	def __init__(self):
		self.lock = threading.Lock()
		self.holders = 0


class KeyedLock:
	"""
	Mutual exclusion per key.

	Callers using different keys never block each other. Entries are
	dropped once no thread holds or waits on them.
	"""

	def __init__(self, timeout: float):
		self.timeout = timeout
		self._guard = threading.Lock()
		self._entries: dict[str, _Entry] = {}

	@contextmanager
	def hold(self, key: str):
		"""Hold the lock for ``key``; raise Contention after ``timeout`` seconds."""
		with self._guard:
			entry = self._entries.get(key)
			if entry is None:
				entry = self._entries[key] = _Entry()
			entry.holders += 1

		try:
			if not entry.lock.acquire(timeout=self.timeout):
				logger.warning(f"Lock wait timed out for {key} after {self.timeout}s")
				raise Contention(
					f"Could not lock {key} within {self.timeout}s",
					details={'key': key, 'timeout': self.timeout},
				)
			try:
				yield
			finally:
				entry.lock.release()
		finally:
			with self._guard:
				entry.holders -= 1
				if entry.holders == 0:
					del self._entries[key]

	def __len__(self):
		with self._guard:
			return len(self._entries)
