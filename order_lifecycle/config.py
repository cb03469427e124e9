import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")
    SQLITE_PATH: str = os.getenv("SQLITE_PATH", "./orders.db")

    # API
    API_TOKEN: str = os.getenv("API_TOKEN", "")

    # Services
    CATALOG_BASE_URL: str = os.getenv("CATALOG_BASE_URL", "http://localhost:8081")
    PAYMENTS_BASE_URL: str = os.getenv("PAYMENTS_BASE_URL", "http://localhost:8082")
    PAYMENT_TIMEOUT_SECONDS: float = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "10"))

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    KAFKA_ORDER_TOPIC: str = os.getenv("KAFKA_ORDER_TOPIC", "order.events")
    KAFKA_SHIPMENT_TOPIC: str = os.getenv("KAFKA_SHIPMENT_TOPIC", "shipment.events")

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        if not self.POSTGRES_CONNECTION_STRING:
            return f"sqlite+aiosqlite:///{self.SQLITE_PATH}"
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")


settings = Settings()
