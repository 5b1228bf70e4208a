"""Pattern catalog — static extraction rules per semantic category.

Pure data, no logic. Each singleton category maps an id to its surface
patterns; entity ids double as the values written to the current context
(``current.location == "tavern"``).

Location entries carry metadata used by consumers:
  type     building | dungeon | wilderness | travel | settlement | temporary
  terrain  urban | underground | forest | mountain | swamp | desert | coastal |
           road | plains | ruins | tundra
  tags     context tags merged into the store while the location is current

Combat is scored, not matched: each COMBAT_SIGNALS group counts at most once
per message, and any COMBAT_EXCLUSIONS hit zeroes the score.
"""

import re

_I = re.IGNORECASE

LOCATIONS: dict[str, dict] = {
    "tavern": {
        "patterns": [r"\b(tavern|inn|bar|pub|alehouse|drinking hall)\b", r"\border(s|ed|ing)?\s+(ale|drink|mead|wine)\b"],
        "type": "building",
        "terrain": "urban",
        "tags": ["social", "rest", "rumors"],
    },
    "market": {
        "patterns": [r"\b(market|bazaar|shop|store|merchant|trading post|stall)\b", r"\b(buy|sell|trade|haggle|barter)\b"],
        "type": "building",
        "terrain": "urban",
        "tags": ["trade", "social"],
    },
    "temple": {
        "patterns": [r"\b(temple|church|shrine|cathedral|chapel|sanctuary|altar)\b", r"\b(pray|worship|blessing|holy|sacred)\b"],
        "type": "building",
        "terrain": "urban",
        "tags": ["religious", "healing"],
    },
    "castle": {
        "patterns": [r"\b(castle|palace|keep|fortress|citadel|throne room|court)\b", r"\b(king|queen|noble|royal)\b"],
        "type": "building",
        "terrain": "urban",
        "tags": ["political", "noble"],
    },
    "guild": {
        "patterns": [r"\b(guild|guild hall|adventurer|mercenary|bounty board|quest board)\b"],
        "type": "building",
        "terrain": "urban",
        "tags": ["quests", "social"],
    },
    "blacksmith": {
        "patterns": [r"\b(blacksmith|forge|anvil|smithy|armorer|weaponsmith)\b"],
        "type": "building",
        "terrain": "urban",
        "tags": ["trade", "crafting"],
    },
    "library": {
        "patterns": [r"\b(library|archive|scriptorium|tome)\b"],
        "type": "building",
        "terrain": "urban",
        "tags": ["knowledge", "magic"],
    },
    "dungeon": {
        "patterns": [r"\b(dungeon|crypt|catacomb|tomb|vault|underground|cavern|cave)\b"],
        "type": "dungeon",
        "terrain": "underground",
        "tags": ["danger", "exploration", "loot"],
    },
    "forest": {
        "patterns": [r"\b(forest|woods|grove|thicket|woodland|clearing)\b"],
        "type": "wilderness",
        "terrain": "forest",
        "tags": ["nature", "hunting", "danger"],
    },
    "mountain": {
        "patterns": [r"\b(mountain|peak|summit|cliff|ridge|highland|mountain pass)\b"],
        "type": "wilderness",
        "terrain": "mountain",
        "tags": ["danger", "exploration"],
    },
    "swamp": {
        "patterns": [r"\b(swamp|marsh|bog|wetland|fen|mire)\b"],
        "type": "wilderness",
        "terrain": "swamp",
        "tags": ["danger", "disease"],
    },
    "desert": {
        "patterns": [r"\b(desert|dunes?|oasis|wasteland)\b"],
        "type": "wilderness",
        "terrain": "desert",
        "tags": ["danger", "heat"],
    },
    "coast": {
        "patterns": [r"\b(coast|beach|shore|harbor|harbour|port|docks?|pier)\b"],
        "type": "wilderness",
        "terrain": "coastal",
        "tags": ["travel", "trade"],
    },
    "home": {
        "patterns": [r"\b(home|house|residence|quarters|bedroom|kitchen|living room)\b"],
        "type": "building",
        "terrain": "urban",
        "tags": ["rest", "safe", "private"],
    },
    "road": {
        "patterns": [r"\b(road|trail|highway|trade route)\b", r"\btravel(?:ing|ed|s)? (?:along|down|toward)\b"],
        "type": "travel",
        "terrain": "road",
        "tags": ["travel", "encounters"],
    },
    "village": {
        "patterns": [r"\b(village|hamlet|settlement|town|city)\b"],
        "type": "settlement",
        "terrain": "urban",
        "tags": ["social", "rest", "trade"],
    },
    "camp": {
        "patterns": [r"\b(camp|campfire|tent|make camp|set up camp)\b"],
        "type": "temporary",
        "terrain": "plains",
        "tags": ["rest", "vulnerable"],
    },
    "ruins": {
        "patterns": [r"\b(ruins?|crumbling walls|abandoned (?:fort|keep|tower|temple))\b"],
        "type": "dungeon",
        "terrain": "ruins",
        "tags": ["exploration", "danger", "loot"],
    },
    "plains": {
        "patterns": [r"\b(plains?|fields?|meadow|grassland|prairie|open land)\b"],
        "type": "wilderness",
        "terrain": "plains",
        "tags": ["travel", "open"],
    },
    "tundra": {
        "patterns": [r"\b(tundra|glacier|arctic|ice field|frozen waste)\b"],
        "type": "wilderness",
        "terrain": "tundra",
        "tags": ["cold", "danger"],
    },
}

FACTIONS: dict[str, dict] = {
    "valdran_empire": {
        "label": "Valdran Empire",
        "patterns": [r"\b(valdran|empire|imperial|emperor|legion)\b"],
    },
    "magocracy": {
        "label": "Magocracy",
        "patterns": [r"\b(magocracy|arcana|mage|wizard|sorcerer|magic council|archmage)\b"],
    },
    "solarus_theocracy": {
        "label": "Solarus Theocracy",
        "patterns": [r"\b(solarus|theocracy|sun god|holy order|inquisitor|paladin)\b"],
    },
    "elven_courts": {
        "label": "Elven Courts",
        "patterns": [r"\b(elven|elf|elves|fey|sylvan|woodland realm)\b"],
    },
    "dwarven_holds": {
        "label": "Dwarven Holds",
        "patterns": [r"\b(dwarven|dwarf|dwarves|dwarven hold|mountain king|undermountain)\b"],
    },
    "orcish_dominion": {
        "label": "Orcish Dominion",
        "patterns": [r"\b(orcish|orc|orcs|warchief|orc horde)\b"],
    },
    "free_cities": {
        "label": "Free Cities",
        "patterns": [r"\b(free cities|merchant guild|trade league|mercantia|merchant republic|trade guild)\b"],
    },
    "shadow_consortium": {
        "label": "Shadow Consortium",
        "patterns": [r"\b(shadow consortium|thieves guild|assassin guild|black market syndicate)\b"],
    },
    "beastkin_tribes": {
        "label": "Beastkin Tribes",
        "patterns": [r"\b(beastkin|beast tribe|shifter clan|werewolf|lycanthrope)\b"],
    },
    "undead_kingdoms": {
        "label": "Undead Kingdoms",
        "patterns": [r"\b(undead kingdom|necromancer|lich king|vampire lord|death knight order)\b"],
    },
    "sea_kingdoms": {
        "label": "Sea Kingdoms",
        "patterns": [r"\b(sea kingdom|pirate fleet|naval fleet|admiral|corsair)\b"],
    },
    "nomad_confederacy": {
        "label": "Nomad Confederacy",
        "patterns": [r"\b(nomad confederacy|horse lord|steppe rider|wandering tribe|caravan master)\b"],
    },
}

WEATHER: dict[str, list[str]] = {
    "clear": [r"\b(sunny|cloudless|clear sky|clear skies|fair weather)\b"],
    "cloudy": [r"\b(cloudy|clouds|overcast|grey sky|gray sky)\b"],
    "rain": [r"\b(rain|raining|drizzle|downpour|rainshower)\b"],
    "storm": [r"\b(storm|thunder|lightning|tempest)\b"],
    "snow": [r"\b(snow|snowing|blizzard|sleet)\b"],
    "fog": [r"\b(fog|foggy|mist|misty|haze)\b"],
    "wind": [r"\b(wind|windy|gust|gale)\b"],
    "hot": [r"\b(sweltering|scorching heat|heatwave|blazing sun)\b"],
}

TIMES_OF_DAY: dict[str, list[str]] = {
    "dawn": [r"\b(dawn|sunrise|daybreak|first light|early morning)\b"],
    "morning": [r"\b(morning|forenoon|mid-morning)\b"],
    "noon": [r"\b(noon|midday|high sun)\b"],
    "afternoon": [r"\b(afternoon|late day)\b"],
    "dusk": [r"\b(dusk|sunset|twilight|evening)\b"],
    "night": [r"\b(night|midnight|moonlight|starlight)\b"],
}

# Names are matched case-sensitively; only the lead-in words ignore case.
_NAME = r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)"
_TITLE = r"(?:(?i:captain|lord|lady|sir|master|commander|general|chief|elder)\s+)"

PERSON_PATTERNS: list[str] = [
    rf"(?i:\b(?:meet|met|spoke to|talk to|speaking with|conversation with|greeted by|introduced to))\s+{_TITLE}?{_NAME}",
    rf"\b{_NAME}\s+(?i:says|said|tells|told|asks|asked|replies|replied|speaks|spoke|demands|demanded|whispers|whispered|shouts|shouted)\b",
    rf"\b{_TITLE}{_NAME}",
    rf"\b{_NAME}'s\s+(?i:home|house|room|kitchen|shop|store|office|quarters)\b",
    rf"(?i:\bbelongs to)\s+{_TITLE}?{_NAME}",
]

PERSON_STOP_WORDS: frozenset[str] = frozenset({
    "the", "and", "but", "for", "you", "your", "they", "their", "him", "her", "his",
    "that", "this", "what", "who", "how", "why", "when", "where", "which",
    "captain", "lord", "lady", "sir", "master", "commander", "general",
    "someone", "anyone", "everyone", "nobody", "something", "nothing",
    "location", "weather", "quest", "skill", "spell", "level",
    "she", "he", "it", "we", "then", "there", "here",
})

# (pattern, direction); the item name is the last non-empty group.
ITEM_PATTERNS: list[tuple[str, str]] = [
    (r"\[\+(\d+\s+)?([A-Za-z][A-Za-z\s]+?)\]", "gained"),
    (r"\[-(\d+\s+)?([A-Za-z][A-Za-z\s]+?)\]", "lost"),
    (r"(?i:\[Acquired:\s*)([A-Za-z][A-Za-z\s]+?)(?:\s+x\d+)?\]", "gained"),
    (r"(?i:\[Received:\s*)([A-Za-z][A-Za-z\s]+?)\]", "gained"),
    (r"(?i:\[Lost:\s*)(\d+\s+)?([A-Za-z][A-Za-z\s]+?)\]", "lost"),
    (r"(?i:\b(?:receive[sd]?|obtained|found|picked up|acquired|looted)\s+(?:a|an|the|some|\d+)\s+)"
     r"([A-Za-z][A-Za-z ]{2,25}?)(?=\.|,|!|\n| from\b|$)", "gained"),
]

ITEM_SKIP_WORDS: frozenset[str] = frozenset({
    "it", "them", "this", "that", "something", "anything", "nothing",
    "quest", "objective", "complete", "started", "updated", "weather",
    "reputation", "relationship", "level", "skill", "hp", "mp", "sp", "xp",
    "location", "combat", "safe", "check", "update", "gold", "silver", "copper",
})

# Bracketed spans that are system directives rather than narrative content.
SYSTEM_DIRECTIVES: list[str] = [
    r"^\[(?:Well|Oh|I |You |Don't|Trust|Try|That|This|Let|How|Why|What|The |My |Your |Yes|No|Now|Here|Good|First|"
    r"Quest|Weather|HP|MP|SP|XP|STR|DEX|CON|INT|WIS|CHA|Level|Skill|Location|Status|Gold|Silver|Copper|Free Cities)",
    r"^\[.*(?:reputation|relationship|Update|Started|Complete|Objective|Check).*\]",
    r"^\[Oops",
    r"^\[\.\.\.",
    r"^\[.*\?\]",
]

BRACKET_SPAN = r"\[[^\[\]\n]*\]"

COMBAT_SIGNALS: list[str] = [
    # attacks by someone else, narrated as happening now
    r"\b(attacks|strikes|slashes|stabs|swings (?:at|toward)|parries|lunges at|charges at)\b",
    r"\b(in combat|battle (?:begins|starts|erupts)|fight breaks out|combat stance|draw(?:s|ing)? (?:a |his |her |their )?(?:sword|weapon|blade))\b",
    r"\b(takes? \d+ damage|wounds? you|injures?|blood (?:flows|sprays)|pain lances)\b",
    r"\b(enemy attacks?|enemies? approach|hostile|ambush(?:ed)?|bandits? attack|monster lunges)\b",
    r"\bwith (?:a|an|the|his|her|their|its) (?:sword|blade|axe|dagger|knife|spear|mace|club|bow|crossbow|weapon|staff)\b",
]

COMBAT_EXCLUSIONS: list[str] = [
    r"you die|you died|death|dying|was killed|were killed|last breath|heart stopped",
    r"could kill|would kill|might kill",
    r"kill.*boredom|fight.*urge",
]

MECHANICS_BLOCK = r"(?:^|\n)\s*MECHANICS\s*:?\s*\n([\s\S]*?)(?:\n{2,}|\n\s*[-=*]{3,}|\s*$)"

MECHANICS_TAGS: dict[str, str] = {
    "resource": r"^(HP|MP|SP|XP)\s*([+-])\s*(\d[\d,]*)",
    "currency": r"^(Gold|Silver|Copper)\s*([+-])\s*(\d[\d,]*)",
    "quest": r'^Quest\s*\+?\s*"?([^"=]+?)"?\s*(?:status\s*=\s*([A-Za-z]+))?\s*$',
    "status": r'^Status\s*([+-])\s*"?(.+?)"?\s*$',
}


def compile_all(patterns: list[str], flags: int = _I) -> list[re.Pattern]:
    return [re.compile(p, flags) for p in patterns]
