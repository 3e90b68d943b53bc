"""
NFT Schemas

Pydantic models for receipt NFT lookups and on-chain verification.
"""

from pydantic import BaseModel, Field

from edufund_api.schemas.donation import NFTResponse


class NFTEnvelope(BaseModel):
    success: bool = True
    nft: NFTResponse


class OwnerNFTsResponse(BaseModel):
    owner: str
    nfts: list[NFTResponse]
    count: int


class NFTVerificationResponse(BaseModel):
    """Receipt record after checking the chain"""

    success: bool = True
    on_chain: bool = Field(description="Whether the asset exists on-chain")
    quantity: int | None = Field(None, description="On-chain quantity of the asset")
    nft: NFTResponse
