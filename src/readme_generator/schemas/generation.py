"""Schemas for README generation options and requests."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from readme_generator.schemas.repository import RepositorySnapshot

# Display labels, in the default section order.
SECTION_LABELS: dict[str, str] = {
    "badges": "Badges",
    "features": "Features",
    "installation": "Installation",
    "usage": "Usage",
    "techStack": "Tech Stack",
    "apiReference": "API Reference",
    "configuration": "Configuration",
    "testing": "Testing",
    "roadmap": "Roadmap",
    "faq": "FAQ",
    "contributing": "Contributing",
    "security": "Security",
    "license": "License",
}

DEFAULT_ENABLED_SECTIONS = frozenset(
    {"badges", "features", "installation", "usage", "techStack", "contributing", "license"}
)


class Tone(str, Enum):
    """Writing tone of the generated README."""

    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"
    TECHNICAL = "technical"
    MINIMAL = "minimal"


class BadgeStyle(str, Enum):
    """shields.io badge style."""

    FLAT = "flat"
    FLAT_SQUARE = "flat-square"
    PLASTIC = "plastic"
    FOR_THE_BADGE = "for-the-badge"


class SectionToggle(BaseModel):
    """One entry of the ordered section list."""

    model_config = ConfigDict(frozen=True)

    id: str
    enabled: bool = True

    @field_validator("id")
    @classmethod
    def validate_known_section(cls, value: str) -> str:
        if value not in SECTION_LABELS:
            raise ValueError(f"Unknown section: {value}")
        return value


def default_sections() -> list[SectionToggle]:
    return [
        SectionToggle(id=section_id, enabled=section_id in DEFAULT_ENABLED_SECTIONS)
        for section_id in SECTION_LABELS
    ]


class GenerationOptions(BaseModel):
    """User-selected options. Section order dictates output order."""

    model_config = ConfigDict(frozen=True)

    sections: list[SectionToggle] = Field(default_factory=default_sections)
    tone: Tone = Tone.PROFESSIONAL
    badge_style: BadgeStyle = BadgeStyle.FLAT
    use_emojis: bool = False
    include_toc: bool = False

    @model_validator(mode="after")
    def validate_sections(self) -> "GenerationOptions":
        ids = [section.id for section in self.sections]
        if len(ids) != len(set(ids)):
            raise ValueError("Each section may appear only once")
        if not any(section.enabled for section in self.sections):
            raise ValueError("At least one section must be enabled")
        return self

    @property
    def enabled_sections(self) -> list[str]:
        return [section.id for section in self.sections if section.enabled]

    @property
    def needs_anchor_repair(self) -> bool:
        return self.include_toc and self.use_emojis


class PromptRequest(BaseModel):
    """Request to compile a prompt from a snapshot."""

    snapshot: RepositorySnapshot
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class PromptResponse(BaseModel):
    prompt: str
    length: int
    repair_anchors: bool = Field(
        False, description="Pass to the generate call: emoji headers with a table of contents"
    )


class GenerateRequest(BaseModel):
    """Request to generate README markdown from a compiled prompt."""

    prompt: str
    repair_anchors: bool = False


class GenerateResponse(BaseModel):
    content: str
