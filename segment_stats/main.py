import logging
from typing import Dict, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from segment_stats import segments
from segment_stats.db_config import get_db_client
from segment_stats.errors import SegmentStatsError
from segment_stats.logging_config import setup_logging
from segment_stats.models import (
    ErrorResponse,
    SegmentGenderResponse,
    SegmentListResponse,
    SegmentResponse,
    UpdateResponse,
    settings,
)

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@app.exception_handler(SegmentStatsError)
async def segment_stats_error_handler(request: Request, exc: SegmentStatsError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(message=f"Invalid request: {message}").model_dump(),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(message=str(exc) or exc.__class__.__name__).model_dump(),
    )


@app.get("/segments", tags=["segment"], response_model=SegmentListResponse, responses=ERROR_RESPONSES)
def segment_list(q: Optional[str] = None, db_client=Depends(get_db_client)):
    """
    List segments with statistics of their member users.

    - q: optional case-insensitive filter on the segment name.
    - totalCount is the number of segments returned.
    """
    data = segments.list_segments(db_client, q)
    return SegmentListResponse(data=data, totalCount=len(data))


@app.get("/segments/{segment_id}", tags=["segment"], response_model=SegmentResponse, responses=ERROR_RESPONSES)
def get_segment_by_id(segment_id: str, db_client=Depends(get_db_client)):
    """Read one segment document."""
    return SegmentResponse(data=segments.get_segment(db_client, segment_id))


@app.put("/segments/{segment_id}", tags=["segment"], response_model=UpdateResponse, responses=ERROR_RESPONSES)
def update_segment_by_id(
    segment_id: str,
    changes: Optional[Dict] = Body(default=None),
    db_client=Depends(get_db_client),
):
    """Accept a segment update. Updates are not applied yet."""
    segments.update_segment(db_client, segment_id, changes or {})
    return UpdateResponse()


@app.get(
    "/segments/{segment_id}/gender-data",
    tags=["segment"],
    response_model=SegmentGenderResponse,
    responses=ERROR_RESPONSES,
)
def segment_gender_data(segment_id: str, db_client=Depends(get_db_client)):
    """Male and Female user counts of a segment with their percentage of its users."""
    return SegmentGenderResponse(data=segments.get_segment_gender_data(db_client, segment_id))
