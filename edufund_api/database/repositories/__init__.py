"""Database repositories for data access layer"""

from .base import DonationRepository, MintQueueRepository, NFTRepository, ProjectRepository
from .donation import MongoDonationRepository
from .mint_queue import MongoMintQueueRepository
from .nft import MongoNFTRepository
from .project import MongoProjectRepository


__all__ = [
    "DonationRepository",
    "MintQueueRepository",
    "MongoDonationRepository",
    "MongoMintQueueRepository",
    "MongoNFTRepository",
    "MongoProjectRepository",
    "NFTRepository",
    "ProjectRepository",
]
