from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List, Dict


class Settings(BaseSettings):
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None
    FIREBASE_PROJECT_ID: Optional[str] = None
    SEGMENTS_COLLECTION: str = "segments"
    USERS_COLLECTION: str = "users"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


YEARLY_INCOME = "yearly"


class SegmentMetaData(BaseModel):
    """
    Aggregated statistics of one segment, computed from its member users.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    name: Optional[str] = None
    userCount: int
    avgIncome: Optional[float] = None
    topGender: Gender


class SegmentGenderData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Gender = Field(alias="_id")
    userCount: int
    userPercentage: float


class SegmentListResponse(BaseModel):
    success: bool = True
    data: List[SegmentMetaData]
    totalCount: int


class SegmentResponse(BaseModel):
    success: bool = True
    data: Dict


class SegmentGenderResponse(BaseModel):
    success: bool = True
    data: List[SegmentGenderData]


class UpdateResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
