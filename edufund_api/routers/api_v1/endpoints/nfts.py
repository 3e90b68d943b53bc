"""
NFT Endpoints

Receipt NFT lookups by asset, owner and donation, and on-chain verification.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from edufund_api.dependencies.services import get_receipt_service
from edufund_api.exceptions import NotFoundError, ProviderUnavailable
from edufund_api.schemas.donation import NFTResponse
from edufund_api.schemas.nft import NFTEnvelope, NFTVerificationResponse, OwnerNFTsResponse
from edufund_api.services.receipt_service import ReceiptService


router = APIRouter()


@router.get(
    "/owner/{wallet_address}",
    response_model=OwnerNFTsResponse,
    summary="NFTs by owner",
    description="Receipt NFTs issued to a wallet address, most recent first.",
)
async def list_owner_nfts(
    wallet_address: str = Path(description="Owner's Cardano address"),
    limit: int = Query(100, ge=1, le=100),
    service: ReceiptService = Depends(get_receipt_service),
) -> OwnerNFTsResponse:
    receipts = await service.list_by_owner(wallet_address, limit)
    return OwnerNFTsResponse(
        owner=wallet_address,
        nfts=[NFTResponse.from_domain(r) for r in receipts],
        count=len(receipts),
    )


@router.get(
    "/donation/{donation_id}",
    response_model=NFTEnvelope,
    summary="NFT by donation",
    description="Receipt NFT of a donation.",
)
async def get_donation_nft(
    donation_id: str = Path(description="Donation ID"),
    service: ReceiptService = Depends(get_receipt_service),
) -> NFTEnvelope:
    try:
        receipt = await service.get_by_donation(donation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return NFTEnvelope(nft=NFTResponse.from_domain(receipt))


@router.post(
    "/{asset_id}/verify",
    response_model=NFTVerificationResponse,
    summary="Verify NFT on-chain",
    description="Look the asset up on-chain and mark the receipt minted if it exists.",
    responses={
        404: {"description": "NFT not found"},
        503: {"description": "Blockchain provider unavailable"},
    },
)
async def verify_nft(
    asset_id: str = Path(description="Asset ID (policy ID + hex asset name)"),
    service: ReceiptService = Depends(get_receipt_service),
) -> NFTVerificationResponse:
    try:
        result = await service.verify(asset_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    return NFTVerificationResponse(
        on_chain=result.on_chain,
        quantity=result.asset.quantity if result.asset else None,
        nft=NFTResponse.from_domain(result.receipt),
    )


@router.get(
    "/{asset_id}",
    response_model=NFTEnvelope,
    summary="Get NFT",
    description="Receipt NFT by asset ID.",
)
async def get_nft(
    asset_id: str = Path(description="Asset ID (policy ID + hex asset name)"),
    service: ReceiptService = Depends(get_receipt_service),
) -> NFTEnvelope:
    try:
        receipt = await service.get_by_asset(asset_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return NFTEnvelope(nft=NFTResponse.from_domain(receipt))
