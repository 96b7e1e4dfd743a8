"""Database persistence layer for mapping templates."""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite

from ..config import settings
from .models import MappingRuleSet, MappingTemplate, TemplateNotFoundError

logger = logging.getLogger(__name__)


class TemplateStorage:
    """Manages database storage for named mapping templates."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or settings.database_path)
        self._connection: Optional[aiosqlite.Connection] = None

    async def initialize(self):
        """Initialize the database and create tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(str(self.db_path))

        await self._connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS mapping_templates (
                id TEXT PRIMARY KEY,
                property_id TEXT NOT NULL,
                user_id TEXT NULL,
                mapping_name TEXT NOT NULL,
                field_mappings TEXT NOT NULL,
                is_default INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_mapping_templates_property
                ON mapping_templates(property_id);
            CREATE INDEX IF NOT EXISTS idx_mapping_templates_user
                ON mapping_templates(user_id);
            """
        )
        await self._connection.commit()
        logger.info("TemplateStorage initialized")

    async def close(self):
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def store_template(self, template: MappingTemplate) -> MappingTemplate:
        """Store or update a template. Storing a default clears the property's other defaults."""
        if not template.id:
            template.id = str(uuid.uuid4())
        template.updated_at = datetime.now(timezone.utc)
        template.rule_set.property_id = template.property_id
        template.rule_set.name = template.mapping_name

        if template.is_default:
            await self._clear_defaults(template.property_id, exclude_id=template.id)

        await self._connection.execute(
            """
            INSERT OR REPLACE INTO mapping_templates
            (id, property_id, user_id, mapping_name, field_mappings,
             is_default, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                template.id,
                template.property_id,
                template.user_id,
                template.mapping_name,
                json.dumps(template.rule_set.to_platform_mappings()),
                1 if template.is_default else 0,
                template.created_at.isoformat(),
                template.updated_at.isoformat(),
            ),
        )
        await self._connection.commit()

        logger.info(
            f"Stored template '{template.mapping_name}' ({template.id}) "
            f"for property {template.property_id}"
        )
        return template

    async def get_template(self, template_id: str) -> MappingTemplate:
        """
        Get a template by ID.

        Raises:
            TemplateNotFoundError: If no template has this ID
        """
        async with self._connection.execute(
            f"SELECT {self._COLUMNS} FROM mapping_templates WHERE id = ?",
            (template_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise TemplateNotFoundError(f"Template '{template_id}' not found")
        return self._row_to_template(row)

    async def list_templates(
        self, property_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> list[MappingTemplate]:
        """List templates, optionally filtered by property and/or user."""
        query = f"SELECT {self._COLUMNS} FROM mapping_templates WHERE 1 = 1"
        params = []

        if property_id:
            query += " AND property_id = ?"
            params.append(property_id)
        if user_id:
            query += " AND user_id = ?"
            params.append(user_id)
        query += " ORDER BY created_at"

        async with self._connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_template(row) for row in rows]

    async def get_default_template(self, property_id: str) -> Optional[MappingTemplate]:
        """Get the default template of a property, if one is designated."""
        async with self._connection.execute(
            f"""
            SELECT {self._COLUMNS} FROM mapping_templates
            WHERE property_id = ? AND is_default = 1
            ORDER BY updated_at DESC
            """,
            (property_id,),
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_template(row)
        return None

    async def set_default(self, template_id: str) -> MappingTemplate:
        """Designate a template as its property's default."""
        template = await self.get_template(template_id)
        template.is_default = True
        return await self.store_template(template)

    async def delete_template(self, template_id: str) -> bool:
        """Delete a template by ID."""
        cursor = await self._connection.execute(
            "DELETE FROM mapping_templates WHERE id = ?", (template_id,)
        )
        await self._connection.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Deleted template {template_id}")
        return deleted

    async def _clear_defaults(self, property_id: str, exclude_id: str):
        await self._connection.execute(
            """
            UPDATE mapping_templates SET is_default = 0
            WHERE property_id = ? AND id != ?
            """,
            (property_id, exclude_id),
        )

    _COLUMNS = (
        "id, property_id, user_id, mapping_name, field_mappings, "
        "is_default, created_at, updated_at"
    )

    def _row_to_template(self, row) -> MappingTemplate:
        """Convert a database row to a MappingTemplate object."""
        rule_set = MappingRuleSet.from_platform_mappings(
            json.loads(row[4]), property_id=row[1], name=row[3]
        )
        return MappingTemplate(
            id=row[0],
            property_id=row[1],
            user_id=row[2],
            mapping_name=row[3],
            rule_set=rule_set,
            is_default=bool(row[5]),
            created_at=datetime.fromisoformat(row[6]),
            updated_at=datetime.fromisoformat(row[7]),
        )
