"""Catalogue of disguise applications shown in stealth mode."""

from dataclasses import dataclass

from desist.domain.enums.modes import CoverStory


@dataclass(frozen=True)
class CoverStoryProfile:
    """Presentation metadata for one cover story."""

    story: CoverStory
    name: str
    icon: str
    description: str

    def to_dict(self) -> dict:
        return {
            "id": self.story.value,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
        }


COVER_STORIES: dict[CoverStory, CoverStoryProfile] = {
    CoverStory.NOTES: CoverStoryProfile(
        story=CoverStory.NOTES,
        name="Notes App",
        icon="file-text",
        description="A simple note-taking app with a few everyday notes.",
    ),
    CoverStory.CALCULATOR: CoverStoryProfile(
        story=CoverStory.CALCULATOR,
        name="Calculator",
        icon="calculator",
        description="A working calculator. Enter the unlock code and press = to exit.",
    ),
    CoverStory.BROWSER: CoverStoryProfile(
        story=CoverStory.BROWSER,
        name="Browser",
        icon="globe",
        description="A web browser start page with news headlines.",
    ),
    CoverStory.CALENDAR: CoverStoryProfile(
        story=CoverStory.CALENDAR,
        name="Calendar",
        icon="calendar",
        description="A monthly calendar with ordinary appointments.",
    ),
}


def get_cover_story(story: CoverStory | str) -> CoverStoryProfile:
    """
    Look up a cover story.

    Raises:
        ValueError: If the story is unknown
    """
    return COVER_STORIES[CoverStory(story)]


def list_cover_stories() -> list[CoverStoryProfile]:
    return list(COVER_STORIES.values())
