"""
Balance Oracle for the token gate.

Answers "how many of token X does address Y hold" with a TTL cache in
front of the chain RPC endpoint, and collapses concurrent lookups for the
same key into one outbound call.

Usage:
    oracle = BalanceOracle(ChainRpcClient(rpc_url), ttl_seconds=300)

    quantity = await oracle.get_balance(chain_id, contract, address, token_id)

Key Properties:
- Cache key: (chain_id, contract, signer, token_id), addresses lowercase
- Entry valid while now - fetched_at < ttl
- LRU eviction when the cache is full
- Failed lookups are never cached
- N concurrent misses for one key -> exactly one RPC call; every waiter
  gets the same result or error
- Cancelling a waiter (even the first one) never cancels the RPC for the
  other waiters
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, NamedTuple, Optional, Protocol

from ...core.digest import canonicalize_address
from ...core.errors import OracleUnavailable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 10000


class BalanceReader(Protocol):
    """Outbound balance source (normally ChainRpcClient)."""

    async def get_balance(self, contract: str, owner: str, token_id: int) -> int: ...


class BalanceKey(NamedTuple):
    chain_id: int
    contract: str
    owner: str
    token_id: int


@dataclass
class CacheEntry:
    """A memoized balance answer."""

    quantity: int
    fetched_at: float  # clock seconds


@dataclass
class OracleStats:
    """Oracle statistics."""

    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    rpc_calls: int = 0
    rpc_failures: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class BalanceOracle:
    """
    Cached, de-duplicating token balance oracle.

    The cache is owned here; nothing outside this class mutates it.
    """

    def __init__(
        self,
        reader: BalanceReader,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self._reader = reader
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock

        # Ordered for LRU
        self._cache: "OrderedDict[BalanceKey, CacheEntry]" = OrderedDict()

        # One pending lookup per key
        self._inflight: Dict[BalanceKey, "asyncio.Task[int]"] = {}

        self._stats = OracleStats()
        self._lock = asyncio.Lock()

        logger.info(
            f"BalanceOracle initialized (ttl={ttl_seconds}s, max={max_entries})"
        )

    @staticmethod
    def make_key(chain_id: int, contract: str, address: str, token_id: int) -> BalanceKey:
        return BalanceKey(
            int(chain_id),
            canonicalize_address(contract),
            canonicalize_address(address),
            int(token_id),
        )

    async def get_balance(
        self, chain_id: int, contract: str, address: str, token_id: int
    ) -> int:
        """
        Get the token balance, from cache or a single RPC call.

        Raises:
            OracleUnavailable: the lookup failed
        """
        key = self.make_key(chain_id, contract, address, token_id)

        async with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                if self._clock() - entry.fetched_at < self.ttl_seconds:
                    self._cache.move_to_end(key)
                    self._stats.hits += 1
                    return entry.quantity

                del self._cache[key]
                self._stats.expirations += 1

            self._stats.misses += 1

            task = self._inflight.get(key)
            if task is None:
                task = asyncio.ensure_future(self._fetch(key))
                task.add_done_callback(_retrieve_outcome)
                self._inflight[key] = task
            else:
                self._stats.coalesced += 1
                logger.debug(f"Joining in-flight balance lookup for {_short(key)}")

        # shield: a cancelled waiter must not cancel the shared lookup
        return await asyncio.shield(task)

    async def _fetch(self, key: BalanceKey) -> int:
        self._stats.rpc_calls += 1
        try:
            try:
                quantity = await self._reader.get_balance(
                    key.contract, key.owner, key.token_id
                )
            except OracleUnavailable as e:
                self._stats.rpc_failures += 1
                logger.warning(f"Balance lookup failed for {_short(key)}: {e.message}")
                raise
            except Exception as e:
                self._stats.rpc_failures += 1
                logger.warning(f"Balance lookup error for {_short(key)}: {e}")
                raise OracleUnavailable(f"Balance lookup failed: {e}") from e

            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
                self._stats.rpc_failures += 1
                raise OracleUnavailable(f"Balance source returned {quantity!r}")

            async with self._lock:
                self._store(key, quantity)

            return quantity
        finally:
            self._inflight.pop(key, None)

    def _store(self, key: BalanceKey, quantity: int) -> None:
        """Upsert an entry; caller holds the lock."""
        if key in self._cache:
            self._cache.move_to_end(key)
        self._cache[key] = CacheEntry(quantity=quantity, fetched_at=self._clock())

        while len(self._cache) > self.max_entries:
            evicted, _ = self._cache.popitem(last=False)
            self._stats.evictions += 1
            logger.debug(f"Evicted balance entry {_short(evicted)}")

    async def invalidate(self, address: Optional[str] = None) -> int:
        """
        Drop cached balances.

        If address is None, clears the entire cache. Returns the number
        of entries removed.
        """
        async with self._lock:
            if address is None:
                count = len(self._cache)
                self._cache.clear()
            else:
                owner = canonicalize_address(address)
                stale = [k for k in self._cache if k.owner == owner]
                for k in stale:
                    del self._cache[k]
                count = len(stale)

            self._stats.invalidations += count

        logger.info(f"Invalidated {count} balance cache entries")
        return count

    def peek(self, chain_id: int, contract: str, address: str, token_id: int) -> Optional[CacheEntry]:
        """Read a cache entry without touching LRU order or stats."""
        return self._cache.get(self.make_key(chain_id, contract, address, token_id))

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def get_stats(self) -> Dict[str, Any]:
        """Get oracle statistics."""
        return {
            "entries": len(self._cache),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "hit_rate": round(self._stats.hit_rate * 100, 2),
            "coalesced": self._stats.coalesced,
            "rpc_calls": self._stats.rpc_calls,
            "rpc_failures": self._stats.rpc_failures,
            "evictions": self._stats.evictions,
            "expirations": self._stats.expirations,
            "invalidations": self._stats.invalidations,
            "inflight": len(self._inflight),
        }


def _retrieve_outcome(task: "asyncio.Task[int]") -> None:
    # Mark the exception retrieved when every waiter went away
    if not task.cancelled():
        task.exception()


def _short(key: BalanceKey) -> str:
    return f"chain={key.chain_id} owner={key.owner[:10]}... token={key.token_id}"


def create_oracle_routes(oracle: BalanceOracle):
    """Create FastAPI routes for oracle cache management."""
    from fastapi import APIRouter

    router = APIRouter(prefix="/api/v1/gate/oracle", tags=["oracle"])

    @router.get("/stats")
    async def get_stats():
        """Get oracle cache statistics."""
        return oracle.get_stats()

    @router.delete("/cache")
    async def invalidate_cache(address: Optional[str] = None):
        """Invalidate cached balances (one signer, or everything)."""
        count = await oracle.invalidate(address)
        return {"invalidated": count}

    return router
