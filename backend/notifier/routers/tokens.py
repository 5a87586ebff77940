"""Push token registration and inspection endpoints."""
import logging

from fastapi import APIRouter, Depends

from ..dependencies import get_token_store
from ..schemas.push import DeleteTokenRequest, PushTokenRecord, SaveTokenRequest
from ..services.push_sender import is_valid_push_token
from ..services.token_store import TokenStore
from .responses import error_response, json_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tokens"])


def _records(records) -> list:
    return [
        PushTokenRecord.model_validate(record).model_dump(by_alias=True, mode="json")
        for record in records
    ]


@router.post("/save-token")
async def save_token(
    request: SaveTokenRequest,
    token_store: TokenStore = Depends(get_token_store),
):
    """Register or refresh a device push token.

    The app calls this on every launch; the same token string updates the
    existing record instead of creating a duplicate.
    """
    if not request.user_id or not request.token:
        return error_response(400, "Missing required fields: userId and token")

    if not is_valid_push_token(request.token):
        return error_response(400, "Invalid push token format")

    try:
        record = await token_store.save_token(request.user_id, request.token, request.device_id)
    except Exception as e:
        logger.error(f"Error saving token: {e}")
        return error_response(500, "Failed to save push token", details=str(e))

    return json_response(
        message="Push token saved successfully",
        userId=record.user_id,
        deviceId=record.device_id,
        tokenType=record.token_type,
    )


@router.delete("/delete-token")
async def delete_token(
    request: DeleteTokenRequest,
    token_store: TokenStore = Depends(get_token_store),
):
    """Remove a token by token string, or by user and device."""
    try:
        if request.token:
            removed = await token_store.delete_by_token(request.token)
            logger.info(f"Token deleted: {request.token[:20]}...")
        elif request.user_id and request.device_id:
            removed = await token_store.delete_token(request.user_id, request.device_id)
            logger.info(f"Token deleted for user {request.user_id}, device {request.device_id}")
        else:
            return error_response(400, "Missing required fields: userId and deviceId")
    except Exception as e:
        logger.error(f"Error deleting token: {e}")
        return error_response(500, "Failed to delete push token", details=str(e))

    return json_response(message="Push token deleted successfully", removed=removed)


@router.get("/tokens/{user_id}")
async def get_user_tokens(
    user_id: str,
    token_store: TokenStore = Depends(get_token_store),
):
    """Raw token records of one user."""
    try:
        records = await token_store.list_user_records(user_id)
    except Exception as e:
        logger.error(f"Error fetching tokens: {e}")
        return error_response(500, "Failed to fetch tokens", details=str(e))

    tokens = _records(records)
    return json_response(userId=user_id, tokens=tokens, count=len(tokens))


@router.get("/tokens")
async def get_all_tokens(token_store: TokenStore = Depends(get_token_store)):
    """Every stored token record (admin inspection)."""
    try:
        records = await token_store.list_all_records()
    except Exception as e:
        logger.error(f"Error fetching all tokens: {e}")
        return error_response(500, "Failed to fetch tokens", details=str(e))

    tokens = _records(records)
    return json_response(tokens=tokens, count=len(tokens))
