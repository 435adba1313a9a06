from motor.motor_asyncio import AsyncIOMotorClient
import logging

from storefront import config

logger = logging.getLogger(__name__)


class Database:
    client: AsyncIOMotorClient = None
    db = None

    async def connect(self, mongo_url: str = None, db_name: str = None):
        mongo_url = mongo_url or config.MONGO_URL
        db_name = db_name or config.DB_NAME
        try:
            self.client = AsyncIOMotorClient(mongo_url)
            self.db = self.client[db_name]
            # Verify connection
            await self.db.command("ping")
            logger.info(f"Connected to MongoDB: {db_name}")

            await self._create_indexes()
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    def get_db(self):
        return self.db

    async def _create_indexes(self):
        """Create indexes used by the order store lookups."""
        await self.db.orders.create_index("order_id", unique=True)
        await self.db.orders.create_index("status")
        await self.db.invoices.create_index("invoice_id", unique=True)
        await self.db.invoices.create_index("order_id", unique=True)
        logger.info("MongoDB indexes created")


database = Database()
