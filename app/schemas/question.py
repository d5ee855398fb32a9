from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Literal, Union, Annotated
from datetime import datetime

from app.core.constants import QuestionTypeEnum, DifficultyLevelEnum


class QuestionOptionCreate(BaseModel):
    option_text: str = Field(..., min_length=1)
    is_correct: bool = False

class QuestionOption(QuestionOptionCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)

class QuestionOptionPublic(BaseModel):
    """Option as shown to a student: correctness is never exposed."""
    id: int
    option_text: str

    model_config = ConfigDict(from_attributes=True)


class QuestionCommon(BaseModel):
    question_text: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    topic: Optional[str] = None
    difficulty_level: DifficultyLevelEnum = DifficultyLevelEnum.MEDIUM
    marks: float = Field(1, gt=0)
    negative_marks: float = Field(0, ge=0)
    explanation: Optional[str] = None

class SingleChoiceQuestionCreate(QuestionCommon):
    question_type: Literal["single_choice"]
    options: List[QuestionOptionCreate] = Field(..., min_length=2)

    @field_validator("options")
    @classmethod
    def exactly_one_correct(cls, v):
        correct = sum(1 for option in v if option.is_correct)
        if correct != 1:
            raise ValueError("A single choice question needs exactly one correct option.")
        return v

class TrueFalseQuestionCreate(QuestionCommon):
    question_type: Literal["true_false"]
    correct_answer: str

    @field_validator("correct_answer")
    @classmethod
    def canonical_boolean(cls, v):
        normalized = v.strip().lower()
        if normalized not in ("true", "false"):
            raise ValueError("correct_answer must be 'true' or 'false'.")
        return normalized

class FreeTextQuestionCreate(QuestionCommon):
    question_type: Literal["free_text"]

QuestionCreate = Annotated[
    Union[SingleChoiceQuestionCreate, TrueFalseQuestionCreate, FreeTextQuestionCreate],
    Field(discriminator="question_type")
]

class QuestionBulkCreate(BaseModel):
    questions: List[QuestionCreate] = Field(..., min_length=1)

class QuestionUpdate(BaseModel):
    question_text: Optional[str] = Field(None, min_length=1)
    question_type: Optional[QuestionTypeEnum] = None
    category: Optional[str] = Field(None, min_length=1)
    topic: Optional[str] = None
    difficulty_level: Optional[DifficultyLevelEnum] = None
    marks: Optional[float] = Field(None, gt=0)
    negative_marks: Optional[float] = Field(None, ge=0)
    explanation: Optional[str] = None
    options: Optional[List[QuestionOptionCreate]] = None
    correct_answer: Optional[str] = None


class Question(QuestionCommon):
    id: int
    question_type: QuestionTypeEnum
    correct_answer: Optional[str] = None
    options: List[QuestionOption] = []
    is_active: bool
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class QuestionPublic(BaseModel):
    id: int
    question_text: str
    question_type: QuestionTypeEnum
    marks: float
    negative_marks: float
    options: List[QuestionOptionPublic] = []

    model_config = ConfigDict(from_attributes=True)

class QuestionStats(BaseModel):
    total: int
    by_category: Dict[str, int]
    by_difficulty: Dict[str, int]
    by_type: Dict[str, int]
