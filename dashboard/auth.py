import logging

from fastapi import APIRouter, Depends

from strava_mcp.client import StravaClient
from strava_mcp.errors import StravaError

from .deps import get_strava_client

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status")
async def auth_status(client: StravaClient = Depends(get_strava_client)):
    """
    Reports whether the configured Strava token works.
    An expired token is refreshed on the way, so a success here also means the .env file is current.
    """
    try:
        athlete = await client.get_authenticated_athlete()
    except StravaError as e:
        logger.warning(f"Strava authentication check failed: {str(e)}")
        return {"authenticated": False, "message": str(e)}

    return {
        "authenticated": True,
        "message": f"Authenticated as {athlete.firstname} {athlete.lastname}",
        "profile": {
            "id": athlete.id,
            "name": f"{athlete.firstname} {athlete.lastname}",
            "profile_picture": athlete.profile,
        },
    }
