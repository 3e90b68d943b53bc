"""
Donation Endpoints

FastAPI endpoints for the donation lifecycle: submission, on-chain
confirmation, receipt NFT minting, leaderboard, and project and donor donation
lists.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from edufund_api.dependencies.services import get_donation_service
from edufund_api.enums import VerificationStatus
from edufund_api.exceptions import (
    ConflictError,
    MintFailure,
    NotFoundError,
    PolicyExpired,
    ProviderUnavailable,
    ValidationError,
    VerificationFailure,
)
from edufund_api.schemas.donation import (
    DonationConfirmRequest,
    DonationCreateRequest,
    DonationEnvelope,
    DonationResponse,
    DonorDonationsResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    MintQueueEntryResponse,
    MintRetryRequest,
    NFTResponse,
    ProjectDonationsResponse,
    StuckMintsResponse,
    VerificationResponse,
)
from edufund_api.services.donation_service import DonationOutcome, DonationService
from edufund_api.utils.security import get_operator_api_key


logger = logging.getLogger(__name__)

router = APIRouter()


def _envelope(outcome: DonationOutcome) -> DonationEnvelope:
    return DonationEnvelope(
        donation=DonationResponse.from_domain(outcome.donation),
        nft=NFTResponse.from_domain(outcome.nft) if outcome.nft else None,
        warning=outcome.warning,
        verification=VerificationResponse(**outcome.verification.model_dump()) if outcome.verification else None,
    )


# ============================================================================
# Submission and Confirmation
# ============================================================================


@router.post(
    "/",
    response_model=DonationEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a donation",
    description="Record a donation for an on-chain payment and try to verify, confirm and mint its receipt right away.",
)
async def create_donation(
    request: DonationCreateRequest,
    service: DonationService = Depends(get_donation_service),
) -> DonationEnvelope:
    """
    Submit a donation.

    The donation is stored as **pending** first. If the payment is already in a
    block it is confirmed, credited to the project and its NFT receipt minted
    in the same request; otherwise ``warning`` explains what is left to do.
    """
    try:
        outcome = await service.submit_donation(
            donor_id=request.donor,
            donor_address=request.donor_address,
            project_id=request.project,
            amount_lovelace=request.amount,
            transaction_hash=request.transaction_hash,
            message=request.message,
            category=request.category,
        )
        return _envelope(outcome)

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post(
    "/{donation_id}/confirm",
    response_model=DonationEnvelope,
    summary="Confirm a donation",
    description="Verify a pending donation's payment on-chain. Returns 202 while the transaction is not yet in a block.",
    responses={
        202: {"model": DonationEnvelope, "description": "Transaction not yet confirmed, try again later"},
        400: {"description": "Verification failed or transaction hash mismatch"},
        404: {"description": "Donation not found"},
        409: {"description": "Donation is not pending"},
        503: {"description": "Blockchain provider unavailable"},
    },
)
async def confirm_donation(
    request: DonationConfirmRequest,
    response: Response,
    donation_id: str = Path(description="Donation ID"),
    service: DonationService = Depends(get_donation_service),
) -> DonationEnvelope:
    """Confirm a pending donation and mint its receipt NFT"""
    try:
        outcome = await service.confirm_donation(donation_id, request.tx_hash)

    except (ValidationError, VerificationFailure) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ProviderUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    if outcome.verification and outcome.verification.status == VerificationStatus.PENDING:
        response.status_code = status.HTTP_202_ACCEPTED
    return _envelope(outcome)


@router.put(
    "/{donation_id}/mint-nft",
    response_model=DonationEnvelope,
    summary="Retry receipt NFT mint",
    description="Operator endpoint: retry minting the NFT receipt of a confirmed donation, ignoring the retry cap.",
    dependencies=[Depends(get_operator_api_key)],
)
async def mint_donation_nft(
    donation_id: str = Path(description="Donation ID"),
    request: MintRetryRequest | None = None,
    service: DonationService = Depends(get_donation_service),
) -> DonationEnvelope:
    """Manually mint (or re-mint) a donation's receipt NFT"""
    try:
        outcome = await service.retry_mint(donation_id, image_url=request.image_url if request else None)
        return _envelope(outcome)

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ConflictError, PolicyExpired) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except MintFailure as e:
        raise HTTPException(status_code=502, detail=f"NFT minting failed: {str(e)}")
    except ProviderUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


# ============================================================================
# Reads
# ============================================================================


@router.get(
    "/leaderboard",
    response_model=LeaderboardResponse,
    summary="Donor leaderboard",
    description="Donors ranked by total confirmed donation amount.",
)
async def get_leaderboard(
    limit: int = Query(10, ge=1, le=100, description="Number of donors to return"),
    service: DonationService = Depends(get_donation_service),
) -> LeaderboardResponse:
    entries = await service.leaderboard(limit)
    return LeaderboardResponse(
        leaderboard=[LeaderboardEntryResponse.from_domain(rank, entry) for rank, entry in enumerate(entries, start=1)]
    )


@router.get(
    "/stuck",
    response_model=StuckMintsResponse,
    summary="Stuck receipt mints",
    description="Operator endpoint: confirmed donations whose NFT receipt could not be minted automatically.",
    dependencies=[Depends(get_operator_api_key)],
)
async def list_stuck_mints(
    limit: int = Query(100, ge=1, le=500),
    service: DonationService = Depends(get_donation_service),
) -> StuckMintsResponse:
    entries = await service.list_stuck(limit)
    return StuckMintsResponse(entries=[MintQueueEntryResponse.from_domain(e) for e in entries], count=len(entries))


@router.get(
    "/project/{project_id}",
    response_model=ProjectDonationsResponse,
    summary="Project donations",
    description="Confirmed donations (with or without minted receipt) for a project, most recent first.",
)
async def get_project_donations(
    project_id: str = Path(description="Project ID"),
    limit: int = Query(100, ge=1, le=100),
    service: DonationService = Depends(get_donation_service),
) -> ProjectDonationsResponse:
    try:
        donations = await service.project_donations(project_id, limit)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return ProjectDonationsResponse(
        project_id=project_id,
        donations=[DonationResponse.from_domain(d) for d in donations],
        count=len(donations),
    )


@router.get(
    "/user/{wallet_address}",
    response_model=DonorDonationsResponse,
    summary="Donor history",
    description="Donations paid from a wallet address in any status, most recent first.",
)
async def get_donor_donations(
    wallet_address: str = Path(description="Donor's Cardano address"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: DonationService = Depends(get_donation_service),
) -> DonorDonationsResponse:
    try:
        donations = await service.donor_donations(wallet_address, page, limit)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return DonorDonationsResponse(
        wallet_address=wallet_address,
        donations=[DonationResponse.from_domain(d) for d in donations],
        page=page,
        limit=limit,
        count=len(donations),
    )


@router.get(
    "/{donation_id}",
    response_model=DonationEnvelope,
    summary="Get donation",
    description="Donation details with its receipt NFT, if minted.",
)
async def get_donation(
    donation_id: str = Path(description="Donation ID"),
    service: DonationService = Depends(get_donation_service),
) -> DonationEnvelope:
    try:
        outcome = await service.get_donation(donation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _envelope(outcome)
