"""
saveguard/models/catalog.py -- Game constants the save format depends on.

These mirror the simulation's own tables.  The save engine only needs the
subset that decides what a valid document looks like (enumerations) and the
lookup tables migration steps use to initialise new fields.
"""

OLDEST_VERSION = 1
CURRENT_VERSION = 5

STRUCTURE_TYPES = (
    "WALL", "DOOR", "CHEST",
    "CAMPFIRE", "FARM", "HOUSE", "WAREHOUSE",
    "TOWER", "WATCHTOWER", "GUARD_POST",
    "CRAFTING_STATION", "STORAGE_BUILDING", "BARRACKS",
    "MARKETPLACE", "MARKET", "TOWN_CENTER",
    "FORTRESS", "CASTLE",
)

STRUCTURE_STATUSES = ("BLUEPRINT", "BUILDING", "COMPLETE", "DAMAGED", "DESTROYED")

ACTOR_ROLES = (
    "WORKER", "FARMER", "BUILDER", "GUARD", "MERCHANT", "CRAFTSMAN", "SCHOLAR",
)

TIERS = ("SURVIVAL", "PERMANENT", "TOWN", "CASTLE")
DEFAULT_TIER = "SURVIVAL"

# Number of actor work slots per structure type (introduced in v4).
WORK_SLOTS = {
    "WALL": 0,
    "DOOR": 0,
    "CHEST": 0,
    "CAMPFIRE": 1,
    "FARM": 1,
    "HOUSE": 0,
    "WAREHOUSE": 1,
    "TOWER": 1,
    "WATCHTOWER": 2,
    "GUARD_POST": 1,
    "CRAFTING_STATION": 1,
    "STORAGE_BUILDING": 1,
    "BARRACKS": 2,
    "MARKETPLACE": 2,
    "MARKET": 1,
    "TOWN_CENTER": 2,
    "FORTRESS": 3,
    "CASTLE": 5,
}

# Category each structure type contributes to in region bonuses (v3).
STRUCTURE_CATEGORIES = {
    "WALL": "defense",
    "DOOR": "defense",
    "TOWER": "defense",
    "WATCHTOWER": "defense",
    "GUARD_POST": "defense",
    "BARRACKS": "defense",
    "FORTRESS": "defense",
    "CASTLE": "defense",
    "CAMPFIRE": "production",
    "FARM": "production",
    "CRAFTING_STATION": "production",
    "CHEST": "storage",
    "WAREHOUSE": "storage",
    "STORAGE_BUILDING": "storage",
    "HOUSE": "housing",
    "TOWN_CENTER": "housing",
    "MARKETPLACE": "trade",
    "MARKET": "trade",
}

BONUS_CATEGORIES = ("defense", "production", "storage", "housing", "trade")

# Territory radius rules.
BASE_REGION_RADIUS = 25
MAX_REGION_RADIUS = 100
REGION_RADIUS_BONUS = {
    "WATCHTOWER": 5,
    "GUARD_POST": 2,
    "FORTRESS": 15,
    "CASTLE": 25,
}

# Technologies considered unlocked for a settlement at each tier (v5).
TIER_UNLOCKS = {
    "SURVIVAL": ("basic_construction",),
    "PERMANENT": ("basic_construction", "masonry", "agriculture"),
    "TOWN": ("basic_construction", "masonry", "agriculture", "trade", "fortification"),
    "CASTLE": (
        "basic_construction", "masonry", "agriculture", "trade",
        "fortification", "siegecraft", "arcane_studies",
    ),
}
