from fastapi import APIRouter

from edufund_api.routers.api_v1.endpoints import donations, nfts


api_router = APIRouter()

api_router.include_router(donations.router, prefix="/donations", tags=["Donations"])
api_router.include_router(nfts.router, prefix="/nfts", tags=["NFTs"])
