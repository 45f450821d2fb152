from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DaySubjectBlock(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: str
    main_topic: str = Field(alias="mainTopic")
    sub_topics: List[str] = Field(default_factory=list, alias="subTopics")
    description: str = ""


class SeminarSubTopic(BaseModel):
    name: str
    description: str = ""


class Seminar(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    main_topic: str = Field(alias="mainTopic")
    sub_topics: List[SeminarSubTopic] = Field(default_factory=list, alias="subTopics")
    analogy: str = ""


class StudyPlan(BaseModel):
    """
    Plan document: one per user per week.
    Stored with camelCase field names (completedDays, mainTopic, ...).
    """

    model_config = ConfigDict(populate_by_name=True)

    hours: int
    difficulties: Dict[str, int]
    plan: Dict[str, List[DaySubjectBlock]]
    completed_days: List[str] = Field(default_factory=list, alias="completedDays")
    week: int
    seminar: Optional[Seminar] = None

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, data: dict) -> "StudyPlan":
        return cls.model_validate(data)


# Response contract sent to the generative API for the weekly plan
WEEKLY_PLAN_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "weeklyPlan": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "day": {"type": "STRING"},
                    "schedule": {
                        "type": "ARRAY",
                        "items": {
                            "type": "OBJECT",
                            "properties": {
                                "subject": {"type": "STRING"},
                                "mainTopic": {"type": "STRING"},
                                "subTopics": {
                                    "type": "ARRAY",
                                    "items": {"type": "STRING"},
                                },
                                "description": {"type": "STRING"},
                            },
                        },
                    },
                },
                "propertyOrdering": ["day", "schedule"],
            },
        }
    },
}

# Response contract for the weekend seminar
SEMINAR_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "mainTopic": {"type": "STRING"},
        "subTopics": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "description": {"type": "STRING"},
                },
            },
        },
        "analogy": {"type": "STRING"},
    },
    "propertyOrdering": ["title", "mainTopic", "subTopics", "analogy"],
}
