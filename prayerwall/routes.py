"""
HTTP routes for the prayer wall API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status

from prayerwall.db import DbClient
from prayerwall.dependencies import get_db_client, verify_admin_token
from prayerwall.schemas import (
    ChallengeResponse,
    CreateChallengeRequest,
    CreateIntentionRequest,
    ErrorResponse,
    HealthResponse,
    IncrementChallengeRequest,
    IntentionResponse,
    PrayRequest,
    UpdateChallengeRequest,
)

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    404: {"model": ErrorResponse, "description": "Record not found"},
    500: {"model": ErrorResponse, "description": "Storage failure"},
}

router = APIRouter(responses=ERROR_RESPONSES)
admin_router = APIRouter(
    prefix="/admin",
    dependencies=[Depends(verify_admin_token)],
    responses={403: {"model": ErrorResponse, "description": "Admin access required"}},
)


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


# Intentions


@router.get("/intentions", response_model=list[IntentionResponse])
def list_intentions(db: DbClient = Depends(get_db_client)):
    return [IntentionResponse.from_record(r) for r in db.list_intentions()]


@router.post(
    "/intentions",
    response_model=IntentionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_intention(
    payload: CreateIntentionRequest, db: DbClient = Depends(get_db_client)
):
    record = db.create_intention(
        payload.content, name=payload.name, prayer_type=payload.prayer_type
    )
    return IntentionResponse.from_record(record)


@router.post("/intentions/{intention_id}/pray", response_model=IntentionResponse)
def pray_for_intention(
    intention_id: int,
    payload: PrayRequest,
    db: DbClient = Depends(get_db_client),
):
    """
    Count one prayer of the given type for an intention.
    """
    record = db.increment_intention_counter(intention_id, payload.type.counter, 1)
    if not record:
        raise HTTPException(status_code=404, detail="Intention not found")
    return IntentionResponse.from_record(record)


# Challenges


@router.get("/challenges/active", response_model=Optional[ChallengeResponse])
def get_active_challenge(db: DbClient = Depends(get_db_client)):
    record = db.get_active_challenge()
    return ChallengeResponse.from_record(record) if record else None


@router.post(
    "/challenges/{challenge_id}/increment", response_model=ChallengeResponse
)
def increment_challenge(
    challenge_id: int,
    payload: Optional[IncrementChallengeRequest] = Body(default=None),
    db: DbClient = Depends(get_db_client),
):
    """
    Add to a challenge's running count. An empty body counts one prayer.
    """
    amount = payload.amount if payload else 1
    record = db.increment_challenge(challenge_id, amount)
    if not record:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return ChallengeResponse.from_record(record)


# Admin


@admin_router.get("/challenges", response_model=list[ChallengeResponse])
def list_challenges(db: DbClient = Depends(get_db_client)):
    return [ChallengeResponse.from_record(r) for r in db.list_challenges()]


@admin_router.post(
    "/challenges",
    response_model=ChallengeResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_challenge(
    payload: CreateChallengeRequest, db: DbClient = Depends(get_db_client)
):
    record = db.create_challenge(
        payload.title,
        payload.prayer_type,
        payload.total_target,
        is_active=payload.is_active,
    )
    if record.is_active:
        logger.info("Challenge %s created and activated", record.id)
    return ChallengeResponse.from_record(record)


@admin_router.put("/challenges/{challenge_id}", response_model=ChallengeResponse)
def update_challenge(
    challenge_id: int,
    payload: UpdateChallengeRequest,
    db: DbClient = Depends(get_db_client),
):
    record = db.update_challenge(challenge_id, payload.to_changes())
    if not record:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return ChallengeResponse.from_record(record)


@admin_router.delete(
    "/challenges/{challenge_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def delete_challenge(challenge_id: int, db: DbClient = Depends(get_db_client)):
    if not db.delete_challenge(challenge_id):
        raise HTTPException(status_code=404, detail="Challenge not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.post(
    "/intentions/{intention_id}/printed", response_model=IntentionResponse
)
def mark_intention_printed(
    intention_id: int, db: DbClient = Depends(get_db_client)
):
    record = db.mark_intention_printed(intention_id)
    if not record:
        raise HTTPException(status_code=404, detail="Intention not found")
    return IntentionResponse.from_record(record)


router.include_router(admin_router)
