"""
Server-side aggregations over the users that belong to a segment.

Users hold the membership: each user document lists the ids of its segments
in `segment_ids`, so the members of a segment are the users whose
`segment_ids` array contains the segment id. Every figure below is computed by
Firestore aggregation queries on that member query; only the derived values
(average, shares, majority gender) are computed here.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from google.cloud.firestore import FieldFilter

from segment_stats.errors import InvalidIdentifierError
from segment_stats.models import (
    Gender,
    SegmentGenderData,
    SegmentMetaData,
    YEARLY_INCOME,
    settings,
)

MONTHS_PER_YEAR = 12
MAX_ID_BYTES = 1500
RESERVED_ID = re.compile(r"^__.*__$")


@dataclass
class MemberTotals:
    user_count: int
    income_total: float
    yearly_income_total: float
    male_count: int
    female_count: int

    @property
    def annual_income_total(self) -> float:
        monthly_total = self.income_total - self.yearly_income_total
        return self.yearly_income_total + monthly_total * MONTHS_PER_YEAR


def validate_segment_id(segment_id: str) -> str:
    """Reject strings that cannot name a Firestore document."""
    if (
        not segment_id
        or "/" in segment_id
        or segment_id in (".", "..")
        or RESERVED_ID.match(segment_id)
        or len(segment_id.encode("utf-8")) > MAX_ID_BYTES
    ):
        raise InvalidIdentifierError(f"Invalid segment id: {segment_id!r}")
    return segment_id


def segment_members(db_client, segment_id: str):
    """Query of the users whose segment_ids contain segment_id."""
    return db_client.collection(settings.USERS_COLLECTION).where(
        filter=FieldFilter("segment_ids", "array_contains", segment_id)
    )


def _aggregate(aggregation_query) -> Dict:
    # .get() runs the calculation and returns one list of results per query
    values = {}
    for results in aggregation_query.get():
        for result in results:
            values[result.alias] = result.value
    return values


def member_totals(db_client, segment_id: str) -> MemberTotals:
    members = segment_members(db_client, segment_id)

    overall = _aggregate(
        members.count(alias="user_count").sum("income_level", alias="income_total")
    )
    yearly = _aggregate(
        members.where(filter=FieldFilter("income_type", "==", YEARLY_INCOME))
        .sum("income_level", alias="income_total")
    )
    gender_counts = {
        gender: _aggregate(
            members.where(filter=FieldFilter("gender", "==", gender.value)).count(alias="user_count")
        ).get("user_count", 0)
        for gender in Gender
    }

    return MemberTotals(
        user_count=overall.get("user_count", 0),
        income_total=overall.get("income_total", 0),
        yearly_income_total=yearly.get("income_total", 0),
        male_count=gender_counts[Gender.MALE],
        female_count=gender_counts[Gender.FEMALE],
    )


def top_gender(male_count: int, female_count: int) -> Gender:
    # ties go to Male
    return Gender.FEMALE if female_count > male_count else Gender.MALE


def build_segment_meta(segment_id: str, name: Optional[str], totals: MemberTotals) -> SegmentMetaData:
    avg_income = None
    if totals.user_count:
        avg_income = totals.annual_income_total / totals.user_count

    return SegmentMetaData(
        id=segment_id,
        name=name,
        userCount=totals.user_count,
        avgIncome=avg_income,
        topGender=top_gender(totals.male_count, totals.female_count),
    )


def build_gender_buckets(totals: MemberTotals) -> List[SegmentGenderData]:
    """Male and Female buckets, in that order; an empty segment gives zeros."""
    buckets = []
    for gender, count in ((Gender.MALE, totals.male_count), (Gender.FEMALE, totals.female_count)):
        percentage = count / totals.user_count if totals.user_count else 0.0
        buckets.append(SegmentGenderData(id=gender, userCount=count, userPercentage=percentage))
    return buckets
