"""
Quote template management.

WHAT: Create/read/replace/delete quote templates and seed the stock ones.

WHY: Templates are read-mostly reference data. Editing or deleting a
template never changes quotes already created from it; deleting one only
detaches those quotes (template_id set to NULL).
"""

import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.core.exceptions import TemplateNotFoundError
from quote_engine.dao.quote import QuoteDAO
from quote_engine.dao.quote_template import QuoteTemplateDAO
from quote_engine.models.quote_template import QuoteTemplate
from quote_engine.schemas.quote_template import QuoteTemplateCreate
from quote_engine.services.default_templates import DEFAULT_TEMPLATES, SYSTEM_USER
from quote_engine.services.line_items import dump_line_items, materialize
from quote_engine.services.pricing import apply_volume_discounts, volume_discounts_for

logger = logging.getLogger(__name__)


class QuoteTemplateService:
    """Service for quote template CRUD."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.template_dao = QuoteTemplateDAO(session)
        self.quote_dao = QuoteDAO(session)

    async def create_template(
        self,
        data: QuoteTemplateCreate,
        created_by: Optional[str] = None,
    ) -> QuoteTemplate:
        line_items = apply_volume_discounts(
            materialize(data.line_items), volume_discounts_for(data.settings)
        )
        template = await self.template_dao.create(
            name=data.name,
            description=data.description,
            category=data.category,
            is_default=data.is_default,
            line_items=dump_line_items(line_items),
            settings=data.settings.model_dump(mode="json"),
            usage_count=0,
            created_by=created_by,
        )
        logger.info(f"Created quote template {template.id} '{template.name}'")
        return template

    async def get_template(self, template_id: int) -> QuoteTemplate:
        """
        Get a template by ID.

        Raises:
            TemplateNotFoundError: If the template doesn't exist
        """
        template = await self.template_dao.get_by_id(template_id)
        if not template:
            raise TemplateNotFoundError(
                message=f"Quote template {template_id} not found",
                resource_type="QuoteTemplate",
                resource_id=template_id,
            )
        return template

    async def list_templates(
        self,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[QuoteTemplate]:
        return await self.template_dao.list_templates(category=category, skip=skip, limit=limit)

    async def count_templates(self, category: Optional[str] = None) -> int:
        if category:
            return await self.template_dao.count(category=category)
        return await self.template_dao.count()

    async def replace_template(
        self,
        template_id: int,
        data: QuoteTemplateCreate,
    ) -> QuoteTemplate:
        """
        Replace a template's content. usage_count and authorship are kept.

        Raises:
            TemplateNotFoundError: If the template doesn't exist
        """
        template = await self.get_template(template_id)
        existing_ids = {item.get("id") for item in (template.line_items or [])}

        template.name = data.name
        template.description = data.description
        template.category = data.category
        template.is_default = data.is_default
        line_items = materialize(data.line_items, existing_ids)
        template.line_items = dump_line_items(
            apply_volume_discounts(line_items, volume_discounts_for(data.settings))
        )
        template.settings = data.settings.model_dump(mode="json")

        await self.session.flush()
        await self.session.refresh(template)
        return template

    async def delete_template(self, template_id: int) -> bool:
        """
        Delete a template and detach the quotes created from it.

        Returns:
            True if deleted, False if the template didn't exist
        """
        detached = await self.quote_dao.detach_template(template_id)
        deleted = await self.template_dao.delete(template_id)
        if deleted:
            logger.info(f"Deleted quote template {template_id} (detached {detached} quotes)")
        return deleted

    async def seed_default_templates(self) -> int:
        """
        Insert the stock templates if no template exists yet.

        Returns:
            Number of templates created
        """
        if await self.template_dao.count() > 0:
            return 0

        for template in DEFAULT_TEMPLATES:
            await self.create_template(template, created_by=SYSTEM_USER)

        logger.info(f"Seeded {len(DEFAULT_TEMPLATES)} default quote templates")
        return len(DEFAULT_TEMPLATES)
