# constants.py

# Servers exposed by the catalog
VALID_SERVERS: tuple[str, ...] = ("INX", "Fusion", "Mesa")

# Known maps; also the fallback when the catalog cannot list maps for a server
FALLBACK_MAPS: tuple[str, ...] = (
    "The Island",
    "The Center",
    "Scorched Earth",
    "Ragnarok",
    "Aberration",
    "Extinction",
    "Valguero",
    "Genesis: Part 1",
    "Crystal Isles",
    "Genesis: Part 2",
    "Lost Island",
    "Fjordur",
)

# Discord caps autocomplete responses at 25 choices
MAX_AUTOCOMPLETE_CHOICES = 25

MESSAGE_SEPARATOR = "-" * 32
UNNAMED_SPOT = "Unnamed Cave"
UNKNOWN_TYPE = "Unknown"
