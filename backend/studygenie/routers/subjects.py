import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from studygenie.db.sqlite import (
    create_subject,
    deactivate_subject,
    get_db,
    get_subject,
    list_subjects,
)
from studygenie.dependencies import get_user_id
from studygenie.models.subject import Subject, SubjectCreate, SubjectList

router = APIRouter()


@router.post("/", response_model=Subject, status_code=201)
async def create_subj(
    body: SubjectCreate,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
):
    return await create_subject(db, user_id, body)


@router.get("/", response_model=SubjectList)
async def list_subjs(
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
):
    items = await list_subjects(db, user_id)
    return SubjectList(items=items, total=len(items))


@router.get("/{subject_id}", response_model=Subject)
async def get_subj(
    subject_id: str,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
):
    subject = await get_subject(db, user_id, subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    return subject


@router.delete("/{subject_id}", status_code=204)
async def delete_subj(
    subject_id: str,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
):
    deleted = await deactivate_subject(db, user_id, subject_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Subject not found")
