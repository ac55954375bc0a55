# Skills module
# Each skill is a tool the model can call. Skills are async functions taking
# the shared SkillContext first, then the model-visible arguments.

from .calculator import calculator
from .code_exec import execute_code
from .datetime_ops import FORMATS, get_current_datetime
from .file_ops import read_file, write_file
from .media_gen import STYLES, describe_availability, generate_image
from .url_fetch import fetch_url
from .weather import get_weather
from .web_search import web_search

# Built-in skills, in the order they are offered to the model
BUILT_IN_SKILLS = {
    "calculator": calculator,
    "get_current_datetime": get_current_datetime,
    "fetch_url": fetch_url,
    "web_search": web_search,
    "execute_code": execute_code,
    "read_file": read_file,
    "write_file": write_file,
    "get_weather": get_weather,
    "generate_image": generate_image,
}

# Enum constraints added to the generated schemas
SKILL_ENUMS = {
    "get_current_datetime": {"format": FORMATS},
    "read_file": {"encoding": ["utf-8", "base64"]},
    "get_weather": {"units": ["metric", "imperial"]},
    "generate_image": {"style": STYLES},
}


def _allowed_dirs_note(verb: str):
    def note(settings) -> str:
        return f"For security, only files in these directories can be {verb}: {', '.join(settings.allowed_paths)}"
    return note


# Settings-dependent text appended to tool descriptions
SKILL_NOTES = {
    "read_file": _allowed_dirs_note("accessed"),
    "write_file": _allowed_dirs_note("written"),
    "generate_image": describe_availability,
}


def build_registry(context, names=None):
    """Create a ToolRegistry over the built-in skills (optionally a subset)."""
    from ..core.tool_executor import ToolRegistry

    skills = BUILT_IN_SKILLS
    if names is not None:
        skills = {name: func for name, func in BUILT_IN_SKILLS.items() if name in names}
    return ToolRegistry(skills, context, enums=SKILL_ENUMS, notes=SKILL_NOTES)
