from fastapi import APIRouter, Depends

from ...schemas.installation import Installation
from ...services.providers import StaticJobProvider
from ..deps import get_jobs

router = APIRouter()


@router.get("", response_model=list[Installation])
async def list_installations(jobs: StaticJobProvider = Depends(get_jobs)):
    return await jobs.list_installations()


@router.put("")
async def replace_installations(
    installations: list[Installation],
    jobs: StaticJobProvider = Depends(get_jobs)
):
    """Заменить список монтажей целиком"""
    count = await jobs.replace(installations)
    return {"loaded": count}
