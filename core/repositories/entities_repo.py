"""
Entity repository for synced orders, products, customers and categories.

All writes for one batch happen inside a single transaction.
"""
from typing import Dict, List, Sequence

from core.models import EntityPayload, OrderPayload, Resource, utc_now
from core.repositories.base import BaseRepository, upsert_sql
from core.observability import get_logger

logger = get_logger(__name__)

ORDER_ITEM_COLUMNS = (
    "store_id", "wc_order_id", "wc_product_id", "product_name",
    "sku", "quantity", "subtotal", "total",
)


class EntitiesRepository(BaseRepository):
    """Repository for upserting tenant entities and counting them."""

    async def upsert_batch(
        self,
        store_id: str,
        resource: Resource,
        entities: Sequence[EntityPayload],
    ) -> int:
        """
        Upsert a batch of one resource type for a store.

        One ``ON CONFLICT DO UPDATE`` per entity, keyed on
        ``(store_id, wc_<resource>_id)``. Order items are replaced wholesale.
        The store's ``last_sync_at`` is stamped in the same transaction.

        Returns:
            Number of entities upserted

        Raises:
            duckdb.Error: on any storage failure; nothing is written
        """
        if not entities:
            return 0

        synced_at = utc_now()
        rows = []
        for entity in entities:
            row = entity.to_row(store_id)
            row["synced_at"] = synced_at
            rows.append(row)

        sql = upsert_sql(resource.table, ("store_id", resource.id_field), rows[0].keys())
        item_sql = (
            f"INSERT INTO order_items ({', '.join(ORDER_ITEM_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in ORDER_ITEM_COLUMNS)})"
        )

        def _write(conn) -> int:
            for entity, row in zip(entities, rows):
                conn.execute(sql, list(row.values()))

                if isinstance(entity, OrderPayload):
                    conn.execute(
                        "DELETE FROM order_items WHERE store_id = ? AND wc_order_id = ?",
                        [store_id, entity.wc_order_id],
                    )
                    items = entity.item_rows(store_id)
                    if items:
                        conn.executemany(
                            item_sql,
                            [[item[column] for column in ORDER_ITEM_COLUMNS] for item in items],
                        )

            conn.execute(
                "UPDATE stores SET last_sync_at = ? WHERE id = ?",
                [synced_at, store_id],
            )
            return len(rows)

        count = await self.store.transaction(_write)
        logger.info(f"Upserted {count} {resource.plural}", extra={"store_id": store_id})
        return count

    async def count(self, store_id: str, resource: Resource) -> int:
        """Count stored entities of one type for a store."""
        return await self.store.fetch_value(
            f"SELECT COUNT(*) FROM {resource.table} WHERE store_id = ?",
            [store_id],
        ) or 0

    async def record_counts(self, store_id: str) -> Dict[str, int]:
        """Entity counts for a store, keyed by plural resource name."""
        row = await self.store.fetch_one(
            """
            SELECT
                (SELECT COUNT(*) FROM orders WHERE store_id = ?) AS orders,
                (SELECT COUNT(*) FROM products WHERE store_id = ?) AS products,
                (SELECT COUNT(*) FROM customers WHERE store_id = ?) AS customers,
                (SELECT COUNT(*) FROM categories WHERE store_id = ?) AS categories
            """,
            [store_id] * 4,
        )
        return {resource.plural: int(row[resource.plural] or 0) for resource in Resource}

    async def get_order_items(self, store_id: str, wc_order_id: int) -> List[Dict]:
        """Stored line items of one order."""
        return await self.store.fetch_all(
            """
            SELECT wc_product_id, product_name, sku, quantity, subtotal, total
            FROM order_items
            WHERE store_id = ? AND wc_order_id = ?
            ORDER BY product_name
            """,
            [store_id, wc_order_id],
        )

    async def get_entity(self, store_id: str, resource: Resource, wc_id: int) -> Dict:
        """Stored row of one entity, or None."""
        return await self.store.fetch_one(
            f"SELECT * FROM {resource.table} WHERE store_id = ? AND {resource.id_field} = ?",
            [store_id, wc_id],
        )
