"""
.. module:: cache
   :platform: Unix, Windows
   :synopsis: Optional result caching for ProjectHistory analyses (in memory or on disk)


"""

import copy
import fnmatch
import functools
import gzip
import inspect
import os
import pickle
import threading
from datetime import datetime, timezone

from gitrisk.logging import get_logger

logger = get_logger("cache")


class CacheMissError(Exception):
    pass


class CacheEntry:
    """A cached analysis result together with when it was computed."""

    def __init__(self, data, cache_key=None):
        self.data = data
        self.cached_at = datetime.now(timezone.utc)
        self.cache_key = cache_key

    def age_seconds(self):
        return (datetime.now(timezone.utc) - self.cached_at).total_seconds()

    def age_hours(self):
        return self.age_seconds() / 3600

    def info(self):
        return {
            "cached_at": self.cached_at,
            "age_seconds": self.age_seconds(),
            "age_hours": self.age_hours(),
            "cache_key": self.cache_key,
        }


def make_cache_key(key_prefix, project_name, key_list, arguments):
    # || keeps project names containing underscores unambiguous
    key_parts = [str(arguments.get(k)) for k in key_list]
    return f"{key_prefix}||{project_name}||{'_'.join(key_parts)}"


def multicache(key_prefix, key_list):
    """Decorator caching the result of a ProjectHistory method in its ``cache_backend``.

    Arguments named in ``key_list`` take part in the key, whether passed by position or keyword;
    omitted ones count with their default value. Passing ``force_refresh=True`` skips the cache
    read but still stores the fresh result.

    Args:
        key_prefix (str): Prefix for the cache key, usually the method name.
        key_list (list[str]): Argument names included in the key.
    """

    def multicache_nest(func):
        signature = inspect.signature(func)

        @functools.wraps(func)
        def deco(self, *args, **kwargs):
            force_refresh = kwargs.pop("force_refresh", False)
            if self.cache_backend is None:
                return func(self, *args, **kwargs)

            bound = signature.bind(self, *args, **kwargs)
            bound.apply_defaults()
            key = make_cache_key(key_prefix, self.project_name, key_list, bound.arguments)

            if force_refresh:
                logger.info(f"Force refresh for key: {key}, bypassing cache read.")
            else:
                try:
                    entry = self.cache_backend._get_entry(key)
                    logger.debug(f"Cache hit for key: {key}, cached at: {entry.cached_at}")
                    return copy.deepcopy(entry.data)
                except CacheMissError:
                    logger.debug(f"Cache miss for key: {key}")

            ret = func(self, *args, **kwargs)
            # callers get their own copy so in-place edits never reach the cache
            self.cache_backend.set(key, CacheEntry(copy.deepcopy(ret), cache_key=key))
            logger.debug(f"Cache set for key: {key}")
            return ret

        return deco

    return multicache_nest


class EphemeralCache:
    """
    An in-memory LRU cache.

    :param max_keys: the max number of keys to keep, least recently used keys are evicted first
    """

    def __init__(self, max_keys=1000):
        self._cache = {}
        self._key_list = []
        self._max_keys = max_keys
        self._lock = threading.RLock()

    def _touch(self, k):
        if k in self._key_list:
            self._key_list.remove(k)
        self._key_list.append(k)

    def evict(self, n=1):
        with self._lock:
            for _ in range(min(n, len(self._key_list))):
                key = self._key_list.pop(0)
                self._cache.pop(key, None)

    def set(self, k, v):
        with self._lock:
            if not isinstance(v, CacheEntry):
                v = CacheEntry(v, cache_key=k)
            self._touch(k)
            self._cache[k] = v
            if len(self._key_list) > self._max_keys:
                self.evict(len(self._key_list) - self._max_keys)
            self.save()

    def _get_entry(self, k):
        with self._lock:
            if k not in self._cache:
                raise CacheMissError(k)
            self._touch(k)
            return self._cache[k]

    def get(self, k):
        return self._get_entry(k).data

    def exists(self, k):
        with self._lock:
            return k in self._cache

    def get_cache_info(self, k):
        with self._lock:
            if k in self._cache:
                return self._cache[k].info()
        return None

    def list_cached_keys(self):
        with self._lock:
            return [{"key": k, **self._cache[k].info()} for k in self._key_list if k in self._cache]

    def invalidate_cache(self, keys=None, pattern=None):
        """Drops the given keys and/or keys matching a ``*`` wildcard pattern; everything if neither.

        Returns:
            int: number of entries removed
        """
        with self._lock:
            if keys is None and pattern is None:
                removed = len(self._cache)
                self._cache.clear()
                self._key_list.clear()
            else:
                doomed = {k for k in (keys or []) if k in self._cache}
                if pattern:
                    doomed.update(k for k in self._key_list if fnmatch.fnmatch(k, pattern))
                for k in doomed:
                    self._cache.pop(k, None)
                    if k in self._key_list:
                        self._key_list.remove(k)
                removed = len(doomed)
            self.save()
            return removed

    def get_cache_stats(self):
        with self._lock:
            ages = [entry.age_hours() for entry in self._cache.values()]
            return {
                "total_entries": len(self._cache),
                "max_entries": self._max_keys,
                "cache_usage_percent": (len(self._cache) / self._max_keys) * 100.0,
                "oldest_entry_age_hours": max(ages) if ages else None,
                "newest_entry_age_hours": min(ages) if ages else None,
                "average_entry_age_hours": sum(ages) / len(ages) if ages else None,
            }

    def save(self):
        """Nothing to persist for the in-memory cache."""
        pass


class DiskCache(EphemeralCache):
    """
    An LRU cache persisted to a gzip-compressed pickle file after every write.

    :param filepath: path of the cache file, loaded on creation if it exists
    :param max_keys: the max number of keys to keep
    """

    def __init__(self, filepath, max_keys=1000):
        super().__init__(max_keys=max_keys)
        self.filepath = str(filepath)
        self.load()

    def _get_entry(self, k):
        with self._lock:
            if k not in self._cache:
                # another process may have written it since we loaded
                self.load()
            return super()._get_entry(k)

    def load(self):
        with self._lock:
            if not os.path.exists(self.filepath) or os.path.getsize(self.filepath) == 0:
                logger.info(f"Cache file not found or empty, starting fresh: {self.filepath}")
                return

            try:
                with gzip.open(self.filepath, "rb") as f:
                    loaded = pickle.load(f)
            except (OSError, EOFError, pickle.UnpicklingError, AttributeError, ImportError) as e:
                logger.error(f"Error loading cache file {self.filepath}: {e}. Starting fresh.")
                self._cache = {}
                self._key_list = []
                return

            if not isinstance(loaded, dict) or "_cache" not in loaded or "_key_list" not in loaded:
                logger.warning(f"Invalid cache file format found: {self.filepath}. Starting fresh.")
                self._cache = {}
                self._key_list = []
                return

            self._cache = loaded["_cache"]
            self._key_list = [k for k in loaded["_key_list"] if k in self._cache]
            if len(self._key_list) > self._max_keys:
                self.evict(len(self._key_list) - self._max_keys)
            logger.info(f"Cache loaded from {self.filepath} ({len(self._cache)} entries).")

    def save(self):
        with self._lock:
            parent_dir = os.path.dirname(self.filepath)
            if parent_dir:
                os.makedirs(parent_dir, exist_ok=True)
            try:
                with gzip.open(self.filepath, "wb") as f:
                    pickle.dump(
                        {"_cache": self._cache, "_key_list": self._key_list},
                        f,
                        protocol=pickle.HIGHEST_PROTOCOL,
                    )
            except (OSError, pickle.PicklingError) as e:
                logger.error(f"Error saving cache file {self.filepath}: {e}")
                return
            logger.debug(f"Cache saved to {self.filepath}.")
