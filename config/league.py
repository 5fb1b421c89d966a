"""League schedule conventions: conference weeks and division display order."""

# Season 1 played its conference slate first; only weeks before this were conference games
FIRST_SEASON_CONFERENCE_CUTOFF = 5

# From season 2 on, these weeks are reserved for out-of-conference games.
# Rescheduled conference games played in other weeks still count as conference games.
NON_CONFERENCE_WEEKS: frozenset[int] = frozenset({1, 2, 5, 8})

# Division names always listed first / last within a conference
LEADING_DIVISIONS: frozenset[str] = frozenset({"EAST", "NORTH"})
TRAILING_DIVISIONS: frozenset[str] = frozenset({"WEST", "SOUTH"})


def is_conference_game(season_no: int, week_no: int) -> bool:
    """Whether games in this week count toward conference records."""
    if season_no == 1:
        return week_no < FIRST_SEASON_CONFERENCE_CUTOFF
    return week_no not in NON_CONFERENCE_WEEKS


def division_sort_key(name: str) -> tuple[int, str]:
    """Sort key placing EAST/NORTH first and WEST/SOUTH last, alphabetical otherwise."""
    if name in LEADING_DIVISIONS:
        return (0, name)
    if name in TRAILING_DIVISIONS:
        return (2, name)
    return (1, name)
