"""
Import catalog cards from a JSON file.

The file holds a JSON array of card objects keyed by id. Existing cards
with the same id are updated in place; new ids are inserted. The whole
file is validated before anything is written.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packvault.config import MAX_ATTRIBUTE_VALUE, MIN_ATTRIBUTE_VALUE
from packvault.db.database import async_session_factory, init_db
from packvault.db.operations import count_cards_by_rarity, upsert_card
from packvault.models.card import Card, Rarity

logger = logging.getLogger(__name__)

AttributeValue = Annotated[int, Field(ge=MIN_ATTRIBUTE_VALUE, le=MAX_ATTRIBUTE_VALUE)]


class CatalogCardRecord(BaseModel):
    """One card as it appears in an import file."""

    id: int = Field(ge=1)
    name: str = Field(min_length=1)
    defense: AttributeValue
    offense: AttributeValue
    mechanics: AttributeValue
    challenges: AttributeValue
    game_iq: AttributeValue
    team_sync: AttributeValue
    overall_rating: AttributeValue
    rarity: Rarity
    team: str | None = None
    region: str | None = None
    image_url: str | None = None

    def to_card(self) -> Card:
        return Card(
            id=self.id,
            name=self.name,
            defense=self.defense,
            offense=self.offense,
            mechanics=self.mechanics,
            challenges=self.challenges,
            game_iq=self.game_iq,
            team_sync=self.team_sync,
            overall_rating=self.overall_rating,
            rarity=self.rarity,
            team=self.team,
            region=self.region,
            image_url=self.image_url,
        )


_records_adapter = TypeAdapter(list[CatalogCardRecord])


def parse_catalog(raw: str | bytes) -> list[Card]:
    """
    Parse and validate an import file.

    Raises:
        ValidationError: If any record has an unknown rarity, an attribute
            outside 0-99, or a missing field
        ValueError: If the same id appears twice
    """
    records = _records_adapter.validate_json(raw)

    seen: set[int] = set()
    for record in records:
        if record.id in seen:
            raise ValueError(f"Duplicate card id {record.id} in import file")
        seen.add(record.id)

    return [record.to_card() for record in records]


async def import_cards(
    cards: list[Card],
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
) -> dict[str, int]:
    """
    Upsert cards into the catalog in a single transaction.

    Returns:
        Catalog card counts per rarity after the import
    """
    async with session_factory() as session:
        async with session.begin():
            for card in cards:
                await upsert_card(session, card)
            counts = await count_cards_by_rarity(session)

    logger.info("Imported %d cards; catalog now holds %s", len(cards), counts)
    return counts


async def run_import(path: Path) -> dict[str, int]:
    """Validate the file at `path`, create tables if needed, and import it."""
    logger.info("Importing catalog from %s...", path)

    try:
        cards = parse_catalog(path.read_bytes())
    except (OSError, ValidationError, ValueError) as e:
        logger.error("Failed to read catalog file %s: %s", path, e)
        raise

    await init_db()
    return await import_cards(cards)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Import catalog cards from JSON")
    parser.add_argument("path", type=Path, help="JSON array of card objects")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(run_import(args.path))
    except (OSError, ValidationError, ValueError):
        sys.exit(1)


if __name__ == "__main__":
    main()
