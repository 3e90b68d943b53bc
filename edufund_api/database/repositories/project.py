"""
Project Repository

MongoDB access for project funding totals.
"""

from datetime import datetime

from pymongo import ReturnDocument

from edufund_api.database.models import ProjectMongo
from edufund_api.database.repositories.base import ProjectRepository
from edufund_api.domain import Project
from edufund_api.enums import ProjectStatus


def project_from_raw(raw: dict) -> Project:
    raw["id"] = raw.pop("_id")
    return Project.model_validate(raw)


def funding_update_pipeline(amount_lovelace: int, now: datetime) -> list[dict]:
    """
    Aggregation-pipeline update crediting ``amount_lovelace``.

    Stage 1 adds the amount clamped to the goal and counts the backer.
    Stage 2 recomputes the status from the updated totals:
    funded once the goal is reached, expired once an active project's
    deadline has passed, unchanged otherwise. Cancelled projects keep
    their status.
    """
    return [
        {
            "$set": {
                "current_funding_lovelace": {
                    "$min": [{"$add": ["$current_funding_lovelace", amount_lovelace]}, "$funding_goal_lovelace"]
                },
                "backers_count": {"$add": ["$backers_count", 1]},
                "updated_at": now,
            }
        },
        {
            "$set": {
                "status": {
                    "$switch": {
                        "branches": [
                            {
                                "case": {
                                    "$and": [
                                        {"$ne": ["$status", ProjectStatus.CANCELLED.value]},
                                        {"$gte": ["$current_funding_lovelace", "$funding_goal_lovelace"]},
                                    ]
                                },
                                "then": ProjectStatus.FUNDED.value,
                            },
                            {
                                "case": {
                                    "$and": [
                                        {"$eq": ["$status", ProjectStatus.ACTIVE.value]},
                                        {"$lte": ["$deadline", now]},
                                    ]
                                },
                                "then": ProjectStatus.EXPIRED.value,
                            },
                        ],
                        "default": "$status",
                    }
                }
            }
        },
    ]


class MongoProjectRepository(ProjectRepository):
    """Project repository backed by the ``projects`` collection"""

    def __init__(self, database):
        self.database = database

    def _collection(self):
        return self.database.get_collection(ProjectMongo.Settings.name)

    async def insert(self, project: Project) -> Project:
        data = project.model_dump()
        data["status"] = project.status.value
        await ProjectMongo(**data).insert()
        return project

    async def get(self, project_id: str) -> Project | None:
        raw = await self._collection().find_one({"_id": project_id})
        return project_from_raw(raw) if raw else None

    async def apply_donation(self, project_id: str, amount_lovelace: int, now: datetime) -> Project | None:
        raw = await self._collection().find_one_and_update(
            {"_id": project_id},
            funding_update_pipeline(amount_lovelace, now),
            return_document=ReturnDocument.AFTER,
        )
        return project_from_raw(raw) if raw else None
