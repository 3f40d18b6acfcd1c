"""
Create-or-update by natural key.

Every table the pipeline writes has a natural key (``channels.feed_url``,
``entries.(channel_id, feed_id)``, the owner id of an enrichment row).
``KeyedUpsert`` resolves a key to the existing row or a new one and hands it
to a caller-supplied function that sets the fields, so the Channel
reconciler, the Entry upsert engine and the enrichment writers all follow
the same path.

Example:
    upserter = KeyedUpsert(db, Channel, ("feed_url",))
    await upserter.preload(Channel.feed_url.in_(feed_urls))

    def apply(channel: Channel, created: bool) -> None:
        channel.title = site.title

    result = await upserter.upsert({"feed_url": site.feed_url}, apply)
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


@dataclass
class UpsertResult(Generic[ModelT]):
    instance: ModelT
    created: bool


class KeyedUpsert(Generic[ModelT]):
    """
    Upsert rows of one model keyed by a fixed set of columns.

    Rows seen once (preloaded, looked up or created) are cached for the
    lifetime of the object, so a key repeated within one batch resolves to
    the same instance instead of inserting a duplicate.

    New rows are flushed immediately: the session runs with autoflush off
    and callers often need the generated primary key right away.
    """

    def __init__(self, db: AsyncSession, model: Type[ModelT], key_columns: Sequence[str]):
        self.db = db
        self.model = model
        self.key_columns = tuple(key_columns)
        self.created = 0
        self.updated = 0
        self._cache: Dict[Tuple[Any, ...], ModelT] = {}

    def _key(self, values: Mapping[str, Any]) -> Tuple[Any, ...]:
        return tuple(values[column] for column in self.key_columns)

    def _key_of(self, instance: ModelT) -> Tuple[Any, ...]:
        return tuple(getattr(instance, column) for column in self.key_columns)

    async def preload(self, *criteria) -> int:
        """
        Load every row matching ``criteria`` into the cache with one query.

        Returns:
            Number of rows loaded
        """
        result = await self.db.execute(select(self.model).where(*criteria))
        rows = result.scalars().all()
        for row in rows:
            self._cache[self._key_of(row)] = row
        return len(rows)

    async def find(self, key_values: Mapping[str, Any]) -> Optional[ModelT]:
        """Return the row for ``key_values`` from the cache or the database."""
        key = self._key(key_values)
        if key in self._cache:
            return self._cache[key]

        result = await self.db.execute(
            select(self.model).filter_by(**dict(zip(self.key_columns, key)))
        )
        instance = result.scalar_one_or_none()
        if instance is not None:
            self._cache[key] = instance
        return instance

    async def upsert(
        self,
        key_values: Mapping[str, Any],
        apply: Callable[[ModelT, bool], None],
        admit: Optional[Callable[[], bool]] = None,
    ) -> Optional[UpsertResult[ModelT]]:
        """
        Update the row for ``key_values`` or create it.

        Args:
            key_values: Natural key column -> value
            apply: Sets the non-key fields; receives the instance and whether
                it is being created
            admit: Optional gate for new rows. When it returns False nothing
                is created and None is returned. Existing rows are always
                updated.

        Returns:
            UpsertResult, or None if a new row was not admitted
        """
        instance = await self.find(key_values)
        created = instance is None

        if created:
            if admit is not None and not admit():
                return None
            instance = self.model(**dict(key_values))

        apply(instance, created)

        if created:
            self.db.add(instance)
            await self.db.flush()
            self._cache[self._key(key_values)] = instance
            self.created += 1
        else:
            self.updated += 1

        return UpsertResult(instance=instance, created=created)
