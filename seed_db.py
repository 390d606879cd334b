import logging
import os
import sys
from datetime import UTC, datetime, timedelta

# Add root to pythonpath
sys.path.append(os.getcwd())

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite_db import SQLiteContentRepo, SQLiteOwnerRepo, SQLiteSubscriberRepo
from src.app_shell.context import default_db_path
from src.core.entities import ContentItem, ContentOwner, Subscriber, SubscriberStatus

logger = logging.getLogger("seed")


def seed() -> None:
    db_path = default_db_path()
    logger.info("Seeding to %s", db_path)

    SQLiteMigrator(db_path).run_migrations()

    owners = SQLiteOwnerRepo(db_path)
    content = SQLiteContentRepo(db_path)
    subscribers = SQLiteSubscriberRepo(db_path)

    username = "demo"
    if owners.get_by_username(username) is not None:
        logger.info("Owner %s already exists", username)
        return

    now = datetime.now(UTC)
    owner = owners.save(
        ContentOwner(
            username=username,
            email="demo@example.com",
            display_name="Demo Author",
            newsletter_enabled=True,
            send_mode="digest",
            frequency="weekly",
            newsletter_title="Demo Weekly",
        )
    )
    logger.info("Created owner: %s (%s)", owner.username, owner.id)

    for n in range(1, 4):
        content.save(
            ContentItem(
                owner_id=owner.id,
                title=f"Demo post {n}",
                slug=f"demo-post-{n}",
                status="published",
                published_at=now - timedelta(days=n),
                genre="news",
            )
        )
    content.save(ContentItem(owner_id=owner.id, title="Unfinished draft", slug="draft"))
    logger.info("Created 3 published items and 1 draft")

    for n in range(1, 3):
        subscribers.save(
            Subscriber(
                owner_id=owner.id,
                email=f"reader{n}@example.com",
                status=SubscriberStatus.ACTIVE,
                verified_at=now,
            )
        )
    logger.info("Created 2 active subscribers")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()
