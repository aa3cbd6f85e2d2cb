"""
Quote template Data Access Object (DAO).

WHAT: Database operations for the QuoteTemplate model.

WHY: usage_count is a shared counter bumped by concurrent instantiations;
it is only ever advanced here, with a single atomic UPDATE.
"""

from typing import List, Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.dao.base import BaseDAO
from quote_engine.models.quote_template import QuoteTemplate


class QuoteTemplateDAO(BaseDAO[QuoteTemplate]):
    """Data Access Object for QuoteTemplate model."""

    def __init__(self, session: AsyncSession):
        super().__init__(QuoteTemplate, session)

    async def list_templates(
        self,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[QuoteTemplate]:
        """
        List templates, defaults first, then most used.

        Args:
            category: Only templates in this category
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            List of templates
        """
        query = select(QuoteTemplate)
        if category:
            query = query.where(QuoteTemplate.category == category)
        query = query.order_by(
            QuoteTemplate.is_default.desc(),
            QuoteTemplate.usage_count.desc(),
            QuoteTemplate.id,
        ).offset(skip).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def increment_usage(self, template_id: int) -> Optional[int]:
        """
        Atomically add one to usage_count.

        WHY: UPDATE ... SET usage_count = usage_count + 1 is evaluated by the
        database, so concurrent instantiations never lose an increment.

        Args:
            template_id: Template ID

        Returns:
            New usage count, or None if the template does not exist
        """
        result = await self.session.execute(
            update(QuoteTemplate)
            .where(QuoteTemplate.id == template_id)
            .values(usage_count=QuoteTemplate.usage_count + 1)
            .returning(QuoteTemplate.usage_count)
            .execution_options(synchronize_session=False)
        )
        new_count = result.scalar_one_or_none()

        # Keep an already-loaded instance in step with the database
        template = await self.session.get(QuoteTemplate, template_id)
        if template is not None and new_count is not None:
            await self.session.refresh(template, attribute_names=["usage_count"])
        return new_count
