"""Campus API configuration.

All values come from the environment; defaults suit local development.
"""
import os
from dataclasses import dataclass


DEV_PII_SALT = "default_dev_salt_change_in_production_32chars"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CampusConfig:
    """Runtime settings for the campus safety API."""

    # Salt for principal hashes; must be stable across restarts
    pii_salt: str = DEV_PII_SALT

    port: int = 8010

    # 0 disables expiry
    session_ttl_seconds: int = 0

    # Pending snapshots kept per dashboard subscriber
    subscriber_queue_size: int = 16

    # Keepalive interval for the status stream
    stream_poll_seconds: float = 15.0

    max_message_length: int = 2000

    # PostgreSQL instead of in-memory storage
    use_database: bool = False

    @classmethod
    def from_env(cls) -> "CampusConfig":
        """Create config from environment variables.

        Environment variables:
            PII_HASH_SALT: Principal hashing salt (>= 32 chars)
            PORT: HTTP port (default 8010)
            SESSION_TTL_SECONDS: Session lifetime, 0 for none (default 0)
            SUBSCRIBER_QUEUE_SIZE: Per-subscriber backlog (default 16)
            STREAM_POLL_SECONDS: Stream keepalive interval (default 15)
            MAX_MESSAGE_LENGTH: Chat message limit (default 2000)
            USE_DATABASE: Persist to PostgreSQL (default false)
        """
        return cls(
            pii_salt=os.getenv("PII_HASH_SALT", DEV_PII_SALT),
            port=int(os.getenv("PORT", "8010")),
            session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", "0")),
            subscriber_queue_size=int(os.getenv("SUBSCRIBER_QUEUE_SIZE", "16")),
            stream_poll_seconds=float(os.getenv("STREAM_POLL_SECONDS", "15")),
            max_message_length=int(os.getenv("MAX_MESSAGE_LENGTH", "2000")),
            use_database=_env_flag("USE_DATABASE"),
        )
