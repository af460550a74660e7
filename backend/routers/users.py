from fastapi import APIRouter, Depends

from core.auth import current_active_user
from db.users import User

router = APIRouter()

# Login, registration and user management come from fastapi-users and are
# mounted in main.py; this router only holds the extra endpoints.


@router.get("/me/profile")
async def get_profile(user: User = Depends(current_active_user)):
    return user.to_schema
