"""Script parsing: raw script text into an ordered list of commands.

Script format, one directive or narrative line per line:

  LOC: beach                      location change
  CHA: ava/happy, bob             characters on stage (mood defaults to neutral)
  STP: Follow her / Stay behind   player choices for the next turn (not playable)
  Ava: Hi there                   dialogue, speaker before the first colon
  The waves roll in.              anything else is action/narration

Lines are trimmed and blank lines dropped. Dialogue and action commands
snapshot the location and characters in effect when their line is read.
Unrecognised shapes never fail the parse; they fall through to action.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from vn_engine.models import (
    NEUTRAL_MOOD,
    ActionCommand,
    CharacterRef,
    CharactersCommand,
    Command,
    DialogueCommand,
    LocationCommand,
    SceneContext,
)

LOCATION_PREFIX = "LOC:"
CHARACTERS_PREFIX = "CHA:"
TRANSITION_PREFIX = "STP:"

_LOCATION_BACKGROUNDS: dict[str, tuple[str, ...]] = {
    "forest_clearing": ("#228B22", "#90EE90"),
    "castle_hall": ("#8B4513", "#DAA520"),
    "beach": ("#87CEEB", "#F0E68C", "#FFE4B5"),
    "mountain": ("#696969", "#C0C0C0"),
    "city": ("#708090", "#2F4F4F"),
    "room": ("#DEB887", "#F5DEB3"),
    "library": ("#8B4513", "#DEB887"),
    "garden": ("#9ACD32", "#98FB98"),
}
_DEFAULT_BACKGROUNDS: tuple[str, ...] = ("#87CEEB", "#FFB6C1")


@dataclass
class ParseResult:
    commands: list[Command]
    context: SceneContext
    # None when the text had no STP: line; [] when it had an empty one.
    transition_points: list[str] | None = None


@dataclass
class ScriptValidation:
    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def backgrounds_for_location(location: str) -> tuple[str, ...]:
    """Fallback gradient colours for a location name."""
    return _LOCATION_BACKGROUNDS.get(location, _DEFAULT_BACKGROUNDS)


def parse_characters(payload: str) -> tuple[CharacterRef, ...]:
    """Parse a CHA: payload: comma-separated `name` or `name/mood` entries."""
    characters: list[CharacterRef] = []
    for part in payload.split(","):
        part = part.strip()
        if not part:
            continue
        if "/" in part:
            name, mood = part.split("/", 1)
            characters.append(CharacterRef(name=name.strip(), mood=mood.strip() or NEUTRAL_MOOD))
        else:
            characters.append(CharacterRef(name=part))
    return tuple(characters)


def parse_transition_points(payload: str) -> list[str]:
    return [p.strip() for p in payload.split("/") if p.strip()]


def _speaker_mood(speaker: str, characters: tuple[CharacterRef, ...]) -> str:
    # Later entries overwrite earlier ones, so the last duplicate wins.
    moods = {c.name.lower(): c.mood for c in characters}
    return moods.get(speaker.lower(), NEUTRAL_MOOD)


def parse_script(text: str, context: SceneContext | None = None) -> ParseResult:
    """Parse script text into commands.

    Pass the `context` returned by a previous call to continue a script that
    is being appended to; the result carries the updated context for the next
    fragment.
    """
    ctx = context or SceneContext()
    commands: list[Command] = []
    transition_points: list[str] | None = None

    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith(LOCATION_PREFIX):
            location = line[len(LOCATION_PREFIX):].strip()
            commands.append(LocationCommand(
                location=location,
                backgrounds=backgrounds_for_location(location),
            ))
            ctx = SceneContext(location=location, characters=ctx.characters)

        elif line.startswith(CHARACTERS_PREFIX):
            characters = parse_characters(line[len(CHARACTERS_PREFIX):])
            commands.append(CharactersCommand(characters=characters))
            ctx = SceneContext(location=ctx.location, characters=characters)

        elif line.startswith(TRANSITION_PREFIX):
            transition_points = parse_transition_points(line[len(TRANSITION_PREFIX):])

        elif ":" in line:
            speaker, _, spoken = line.partition(":")
            speaker = speaker.strip()
            commands.append(DialogueCommand(
                speaker=speaker,
                text=spoken.strip(),
                mood=_speaker_mood(speaker, ctx.characters),
                location=ctx.location,
                characters=ctx.characters,
            ))

        else:
            commands.append(ActionCommand(
                text=line,
                location=ctx.location,
                characters=ctx.characters,
            ))

    return ParseResult(commands=commands, context=ctx, transition_points=transition_points)


def commands_to_script(
    commands: list[Command], transition_points: list[str] | None = None
) -> str:
    """Rebuild script text from commands.

    Not byte-identical to the source, but reparsing it yields the same scene
    state at every dialogue and action line.
    """
    lines: list[str] = []
    for command in commands:
        if isinstance(command, LocationCommand):
            lines.append(f"{LOCATION_PREFIX} {command.location}")
        elif isinstance(command, CharactersCommand):
            entries = ", ".join(f"{c.name}/{c.mood}" for c in command.characters)
            lines.append(f"{CHARACTERS_PREFIX} {entries}")
        elif isinstance(command, DialogueCommand):
            lines.append(f"{command.speaker}: {command.text}")
        else:
            lines.append(command.text)
    if transition_points is not None:
        lines.append(f"{TRANSITION_PREFIX} {' / '.join(transition_points)}")
    return "\n".join(lines)


def validate_script(text: str) -> ScriptValidation:
    """Check a script for directives that parse but are probably mistakes."""
    result = ScriptValidation()
    has_location = False
    has_characters = False

    for line_num, raw_line in enumerate(text.split("\n"), start=1):
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith(LOCATION_PREFIX):
            has_location = True
            if not line[len(LOCATION_PREFIX):].strip():
                result.errors.append(f"Line {line_num}: Empty location")
        elif line.startswith(CHARACTERS_PREFIX):
            has_characters = True
            if not parse_characters(line[len(CHARACTERS_PREFIX):]):
                result.errors.append(f"Line {line_num}: Empty characters list")
        elif line.startswith(TRANSITION_PREFIX):
            if not parse_transition_points(line[len(TRANSITION_PREFIX):]):
                result.warnings.append(f"Line {line_num}: Empty story transition points")
        elif ":" in line:
            speaker, _, spoken = line.partition(":")
            if not speaker.strip():
                result.errors.append(f"Line {line_num}: Missing speaker name")
            if not spoken.strip():
                result.warnings.append(f"Line {line_num}: Empty dialogue")

    if not has_location:
        result.warnings.append("No locations defined in script")
    if not has_characters:
        result.warnings.append("No characters defined in script")

    result.valid = not result.errors
    return result


def script_statistics(commands: list[Command]) -> dict:
    """Summarise a parsed script: locations, characters with moods, line counts."""
    locations: list[str] = []
    moods: dict[str, list[str]] = {}
    dialogue = 0
    actions = 0

    for command in commands:
        if isinstance(command, LocationCommand):
            if command.location not in locations:
                locations.append(command.location)
        elif isinstance(command, CharactersCommand):
            for char in command.characters:
                seen = moods.setdefault(char.name, [])
                if char.mood not in seen:
                    seen.append(char.mood)
        elif isinstance(command, DialogueCommand):
            dialogue += 1
        else:
            actions += 1

    return {
        "locations": locations,
        "characters": [{"name": n, "moods": m} for n, m in moods.items()],
        "dialogue_lines": dialogue,
        "action_lines": actions,
        "total_commands": len(commands),
    }
