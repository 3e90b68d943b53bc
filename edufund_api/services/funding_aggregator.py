"""
Funding Aggregator

Credits confirmed donations to their project. The increment, the clamp to the
funding goal, the backer count and the status recomputation happen in one
atomic store update, so concurrent donations to the same project never lose
an increment and never push funding past the goal.
"""

import logging

from edufund_api.database.repositories.base import ProjectRepository
from edufund_api.domain import Project, utcnow
from edufund_api.exceptions import NotFoundError, ValidationError


logger = logging.getLogger(__name__)


class FundingAggregator:
    """Applies donations to project funding totals"""

    def __init__(self, projects: ProjectRepository):
        self.projects = projects

    async def apply_donation(self, project_id: str, amount_lovelace: int) -> Project:
        """
        Credit a donation amount to a project.

        Args:
            project_id: Project to credit
            amount_lovelace: Confirmed donation amount

        Returns:
            Project after the update (funding clamped, status recomputed)

        Raises:
            ValidationError: Non-positive amount
            NotFoundError: Unknown project
        """
        if amount_lovelace <= 0:
            raise ValidationError("Funding amount must be positive")

        project = await self.projects.apply_donation(project_id, amount_lovelace, utcnow())
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")

        logger.info(
            f"Project {project_id} funded {project.current_funding_lovelace}/{project.funding_goal_lovelace} "
            f"lovelace ({project.backers_count} backers, status {project.status.value})"
        )
        return project
