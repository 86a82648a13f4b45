"""XP accumulation and the level-up curve."""

XP_PER_LEVEL_STEP = 200

THEORY_XP = 50
FLASHCARDS_XP = 30
ESSAY_XP = 100

RANKS = [
    (1, "Candidato"),
    (3, "Terceiro Secretário"),
    (6, "Segundo Secretário"),
    (10, "Primeiro Secretário"),
    (15, "Conselheiro"),
    (21, "Ministro de Segunda Classe"),
    (28, "Embaixador"),
]


def level_threshold(level: int) -> int:
    """XP needed to clear `level`."""
    return level * XP_PER_LEVEL_STEP


def add_xp(xp: int, level: int, amount: int) -> dict:
    """Apply an XP award and normalize it into levels.

    Args:
        xp: Current XP inside the current level (below its threshold)
        level: Current level, 1 or higher
        amount: XP to award; zero or negative awards change nothing

    Returns:
        Dict with updated xp, level and whether a level-up happened.
    """
    if amount <= 0:
        return {"xp": xp, "level": level, "leveled_up": False}

    new_xp = xp + amount
    new_level = level
    while new_xp >= level_threshold(new_level):
        new_xp -= level_threshold(new_level)
        new_level += 1

    return {
        "xp": new_xp,
        "level": new_level,
        "leveled_up": new_level > level,
    }


def study_minutes_xp(minutes: int) -> int:
    return max(0, minutes) // 2


def xp_to_next_level(xp: int, level: int) -> int:
    return level_threshold(level) - xp


def level_progress(xp: int, level: int) -> float:
    return xp / level_threshold(level)


def rank_for_level(level: int) -> str:
    title = RANKS[0][1]
    for min_level, name in RANKS:
        if level >= min_level:
            title = name
    return title
