from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Request bodies use the same camelCase names the documents are stored with.
# Unknown keys (including id, createdAt, updatedAt) are dropped.

# BSON integers are signed 64-bit
YEAR_MIN = -2**63
YEAR_MAX = 2**63 - 1


class StudentCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    firstName: str = Field(..., min_length=1)
    lastName: str = Field(..., min_length=1)
    middleInitial: Optional[str] = None
    email: str = Field(..., min_length=1)
    course: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    studentNo: str = Field(..., min_length=1)
    year: Optional[int] = Field(None, ge=YEAR_MIN, le=YEAR_MAX)


class StudentUpdate(StudentCreate):
    """Full replacement: every required field must be sent again."""


class StudentPatch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    firstName: Optional[str] = Field(None, min_length=1)
    lastName: Optional[str] = Field(None, min_length=1)
    middleInitial: Optional[str] = None
    email: Optional[str] = Field(None, min_length=1)
    course: Optional[str] = Field(None, min_length=1)
    section: Optional[str] = Field(None, min_length=1)
    studentNo: Optional[str] = Field(None, min_length=1)
    year: Optional[int] = Field(None, ge=YEAR_MIN, le=YEAR_MAX)


class StudentOut(BaseModel):
    id: str
    firstName: str
    lastName: str
    middleInitial: Optional[str] = None
    email: str
    course: str
    section: str
    studentNo: str
    year: Optional[int] = None
    createdAt: datetime
    updatedAt: datetime


class Message(BaseModel):
    message: str
