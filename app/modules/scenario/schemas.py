from pydantic import BaseModel, ConfigDict, Field

YEAR_MIN = 500
YEAR_MAX = 4000
TITLE_MAX_CHARS = 180
DETAILS_MAX_CHARS = 280
BRANCH_MAX_CHARS = 200
NARRATIVE_CONTEXT_MAX_CHARS = 1200
MAX_TIMELINE_POINTS = 4
MAX_BRANCHES = 3
MIN_BRANCHES = 2
MAX_IMAGES = 2


class TimelinePoint(BaseModel):
    year: int = Field(ge=YEAR_MIN, le=YEAR_MAX)
    title: str = Field(min_length=1, max_length=TITLE_MAX_CHARS)
    details: str = Field(min_length=1, max_length=DETAILS_MAX_CHARS)


class ScenarioImage(BaseModel):
    src: str
    prompt: str


class Scenario(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    narrative: str = Field(min_length=1)
    timeline: list[TimelinePoint] = Field(min_length=MAX_TIMELINE_POINTS, max_length=MAX_TIMELINE_POINTS)
    branches: list[str] = Field(min_length=MIN_BRANCHES, max_length=MAX_BRANCHES)
    image_prompts: list[str] = Field(default_factory=list, max_length=MAX_IMAGES, alias="imagePrompts")
    images: list[ScenarioImage] = Field(default_factory=list, max_length=MAX_IMAGES)


class ContextTimelinePoint(BaseModel):
    year: int | None = None
    title: str = ""
    details: str = ""


class ContextStep(BaseModel):
    branch: str = ""
    narrative: str = ""
    timeline: list[ContextTimelinePoint] = Field(default_factory=list)


class ScenarioResponse(BaseModel):
    scenario: Scenario


class ErrorResponse(BaseModel):
    error: str
