from fastapi import APIRouter, Depends
from quizforms.schemas import UserResponse
from quizforms.models import User
from quizforms.auth import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Return details for the authenticated user."""
    return current_user
