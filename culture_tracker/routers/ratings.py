"""
Ratings router.

POST /submit   — record today's culture rating for one person
"""
from fastapi import APIRouter, Depends

from culture_tracker.core.dependencies import get_submit_service
from culture_tracker.schemas.common import ErrorResponse
from culture_tracker.schemas.submission import RecordOut, SubmitRequest, SubmitResponse
from culture_tracker.services.csv_codec import format_timestamp
from culture_tracker.services.submit_service import SubmitService

router = APIRouter(tags=["ratings"])


@router.post(
    "/submit",
    response_model=SubmitResponse,
    summary="Submit today's culture rating",
    responses={
        200: {"description": "Rating recorded."},
        400: {"model": ErrorResponse, "description": "Missing name, rating outside 1–5, or other invalid input."},
        409: {"model": ErrorResponse, "description": "Already submitted today, or the log changed underneath the write."},
        500: {"model": ErrorResponse, "description": "Backing store or configuration failure."},
    },
)
def submit(payload: SubmitRequest, service: SubmitService = Depends(get_submit_service)):
    """
    Append one rating to the CSV log.

    Each person may submit once per calendar day (in the configured
    timezone). A second submission the same day returns **409**
    `DUPLICATE_SUBMISSION`; if another submission is written between our
    read and our write, **409** `WRITE_CONFLICT` is returned and nothing
    is written.
    """
    record = service.submit(name=payload.name, rating=payload.rating, reason=payload.reason)
    return SubmitResponse(
        record=RecordOut(
            timestamp=format_timestamp(record.timestamp),
            name=record.name,
            rating=record.rating,
            reason=record.reason,
        ),
    )
