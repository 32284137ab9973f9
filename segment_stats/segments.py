import logging
from typing import Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore import DocumentReference, GeoPoint

from segment_stats.aggregations import (
    build_gender_buckets,
    build_segment_meta,
    member_totals,
    validate_segment_id,
)
from segment_stats.errors import NotFoundError, QueryExecutionError
from segment_stats.models import SegmentGenderData, SegmentMetaData, settings

logger = logging.getLogger(__name__)

# Firestore value types that have no JSON form of their own
FIRESTORE_ENCODERS = {
    GeoPoint: lambda point: {"latitude": point.latitude, "longitude": point.longitude},
    DocumentReference: lambda reference: reference.path,
}


def _name_matches(name: Optional[str], q: Optional[str]) -> bool:
    if not q:
        return True
    return q.casefold() in (name or "").casefold()


def list_segments(db_client, q: Optional[str] = None) -> List[SegmentMetaData]:
    """
    Statistics of every segment whose name contains q (case-insensitive).

    Segments without members are left out of the result.
    Cost: one stream of the segments collection plus four aggregation
    queries per matching segment.
    """
    try:
        segments = db_client.collection(settings.SEGMENTS_COLLECTION).stream()
        segment_meta_data = []
        for segment in segments:
            name = (segment.to_dict() or {}).get("name")
            if not _name_matches(name, q):
                continue

            totals = member_totals(db_client, segment.id)
            if not totals.user_count:
                continue
            segment_meta_data.append(build_segment_meta(segment.id, name, totals))

    except GoogleAPIError as e:
        logger.error(f"Get Segment List Error: {e}")
        raise QueryExecutionError(str(e)) from e

    logger.info(f"Listed {len(segment_meta_data)} segments for q={q!r}")
    return segment_meta_data


def get_segment(db_client, segment_id: str) -> Dict:
    """
    Return the stored segment document, with its id under `_id`.

    Geo points become {latitude, longitude} and document references their path.
    """
    validate_segment_id(segment_id)
    try:
        snapshot = db_client.collection(settings.SEGMENTS_COLLECTION).document(segment_id).get()
    except GoogleAPIError as e:
        logger.error(f"Get Segment by id error: {e}")
        raise QueryExecutionError(str(e)) from e

    if not snapshot.exists:
        logger.warning(f"Segment {segment_id} not found")
        raise NotFoundError(f"Segment with id {segment_id} not found.")

    segment = {"_id": snapshot.id, **(snapshot.to_dict() or {})}
    return jsonable_encoder(segment, custom_encoder=FIRESTORE_ENCODERS)


def update_segment(db_client, segment_id: str, changes: Dict) -> None:
    # Updating segments is not supported yet; the request is accepted and nothing is written.
    validate_segment_id(segment_id)
    logger.warning(f"Update of segment {segment_id} ignored, {len(changes)} field(s) dropped")


def get_segment_gender_data(db_client, segment_id: str) -> List[SegmentGenderData]:
    """Male and Female member counts of one segment and their share of its users."""
    validate_segment_id(segment_id)
    try:
        snapshot = db_client.collection(settings.SEGMENTS_COLLECTION).document(segment_id).get()
        if not snapshot.exists:
            raise NotFoundError(f"Segment with id {segment_id} not found.")

        totals = member_totals(db_client, segment_id)

    except GoogleAPIError as e:
        logger.error(f"Segment gender data error: {e}")
        raise QueryExecutionError(str(e)) from e

    return build_gender_buckets(totals)
