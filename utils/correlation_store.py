# correlation_store.py
# Time-expiring mapping from a correlation token ("state") to the JSON state
# record of a Verified ID request, backed by Redis.
#
# - put()    replaces the whole record and (re)arms the TTL
# - get()    returns None for unknown and for expired tokens alike
# - update() read-modify-write of one record under WATCH/MULTI/EXEC, so two
#            callbacks for the same token cannot lose an update. Different
#            tokens watch different keys and never wait on each other.
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

import redis

logging.basicConfig(level=logging.INFO)

DEFAULT_TTL = 300
KEY_SUFFIX = "_request_state"


class CorrelationStore:

    def __init__(self, red: redis.Redis, ttl: int = DEFAULT_TTL):
        self.red = red
        self.ttl = int(ttl)

    def _key(self, token: str) -> str:
        return f"{token}{KEY_SUFFIX}"

    def put(self, token: str, record: Dict[str, Any], ttl: Optional[int] = None) -> None:
        self.red.setex(self._key(token), ttl or self.ttl, json.dumps(record))

    def get(self, token: str) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        raw = self.red.get(self._key(token))
        if raw is None:
            return None
        return json.loads(raw.decode("utf-8") if isinstance(raw, bytes) else raw)

    def update(
        self,
        token: str,
        mutate: Callable[[Dict[str, Any]], Optional[Dict[str, Any]]],
        ttl: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Apply mutate() to the stored record and write it back with a fresh TTL.
        Returns the new record, or None (nothing written) when the token is
        unknown or expired. mutate() may be called more than once if another
        writer touched the record in between.
        """
        if not token:
            return None
        key = self._key(token)
        with self.red.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    raw = pipe.get(key)
                    if raw is None:
                        pipe.unwatch()
                        return None
                    record = json.loads(raw.decode("utf-8") if isinstance(raw, bytes) else raw)
                    new_record = mutate(record)
                    if new_record is None:
                        new_record = record
                    pipe.multi()
                    pipe.setex(key, ttl or self.ttl, json.dumps(new_record))
                    pipe.execute()
                    return new_record
                except redis.WatchError:
                    logging.info("concurrent write on state %s, retry", token)
                    continue
