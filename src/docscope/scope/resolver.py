"""Authorization scope: which nodes are reachable from the configured root."""

import asyncio
import logging
from collections import deque
from typing import Any, Optional, Union

from docscope.errors import ErrorType, ExtractionError, with_retry
from docscope.models import Node
from docscope.protocols import Store

logger = logging.getLogger(__name__)


class ScopeResolver:
    """Decides whether a node lies inside the authorized subtree.

    Policy: a capped top-down closure. On first use the folders under the
    root are listed breadth-first, level by level, up to ``max_depth``
    levels and ``max_nodes`` folders in total. The result (the scope set)
    is memoized; afterwards a node is authorized when it is itself in the
    set or one of its direct parents is. Checks cost one metadata fetch
    and no further round trips.

    Folders beyond either cap are outside the scope even if they are
    descendants of the root. ``invalidate()`` drops the memoized set.
    """

    def __init__(
        self,
        store: Store,
        root_id: str,
        max_depth: int = 3,
        max_nodes: int = 100,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ):
        self.store = store
        self.root_id = root_id
        self.max_depth = max_depth
        self.max_nodes = max_nodes
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

        self._scope: Optional[frozenset[str]] = None
        self._order: tuple[str, ...] = ()
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, store: Store, settings: Any) -> "ScopeResolver":
        return cls(
            store,
            settings.root_folder_id,
            max_depth=settings.max_depth,
            max_nodes=settings.max_nodes,
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay_seconds,
        )

    async def scope_set(self) -> frozenset[str]:
        """The memoized scope set, built on first call."""
        if self._scope is not None:
            return self._scope

        async with self._lock:
            if self._scope is None:
                order = await self._build()
                self._order = tuple(order)
                self._scope = frozenset(order)
        return self._scope

    async def folders(self) -> tuple[str, ...]:
        """Scope folders in breadth-first order, root first."""
        await self.scope_set()
        return self._order

    def invalidate(self) -> None:
        self._scope = None
        self._order = ()

    async def _build(self) -> list[str]:
        order = [self.root_id]
        seen = {self.root_id}
        pending: deque[tuple[str, int]] = deque([(self.root_id, 0)])
        deepest = 0

        while pending and len(order) < self.max_nodes:
            folder_id, depth = pending.popleft()
            if depth >= self.max_depth:
                continue

            children = await with_retry(
                lambda: self.store.list_children(folder_id, folders_only=True),
                self.retry_attempts,
                self.retry_delay,
            )
            logger.debug("Scope: %s has %d subfolders", folder_id, len(children))

            for child in children:
                # Shared drives can surface the same folder twice
                if child.id in seen:
                    continue
                if len(order) >= self.max_nodes:
                    break
                seen.add(child.id)
                order.append(child.id)
                pending.append((child.id, depth + 1))
                deepest = max(deepest, depth + 1)

        logger.info(
            "Built authorization scope: %d folders, depth %d (caps: %d folders, depth %d)",
            len(order), deepest, self.max_nodes, self.max_depth,
        )
        return order

    async def is_authorized(self, node_id: str) -> bool:
        if node_id == self.root_id:
            return True
        scope = await self.scope_set()
        if node_id in scope:
            return True
        node = await with_retry(
            lambda: self.store.get_metadata(node_id),
            self.retry_attempts,
            self.retry_delay,
        )
        return await self.is_node_authorized(node)

    async def is_node_authorized(self, node: Node) -> bool:
        """Check an already-fetched node without another round trip."""
        if node.id == self.root_id:
            return True
        scope = await self.scope_set()
        return node.id in scope or any(parent in scope for parent in node.parents)

    async def ensure_authorized(self, node: Union[Node, str]) -> None:
        """Raise OUT_OF_SCOPE unless the node is authorized."""
        if isinstance(node, Node):
            allowed = await self.is_node_authorized(node)
            node_id = node.id
        else:
            allowed = await self.is_authorized(node)
            node_id = node

        if not allowed:
            logger.warning("Denied access to %s: outside authorized scope", node_id)
            raise ExtractionError(
                ErrorType.OUT_OF_SCOPE,
                f"{node_id} is outside the allowed folder scope.",
            )

    async def search(self, query: str, limit: int = 10) -> list[Node]:
        """Find nodes inside the scope whose name contains ``query``.

        Only folders in the scope set are listed, in breadth-first order.
        """
        limit = max(1, min(limit, 100))
        needle = query.strip().lower()
        matches: list[Node] = []
        seen: set[str] = set()

        for folder_id in await self.folders():
            children = await with_retry(
                lambda: self.store.list_children(folder_id),
                self.retry_attempts,
                self.retry_delay,
            )
            for child in children:
                if child.id in seen:
                    continue
                seen.add(child.id)
                if needle in child.name.lower():
                    matches.append(child)
                    if len(matches) >= limit:
                        return matches
        return matches
