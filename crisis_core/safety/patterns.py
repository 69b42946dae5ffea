"""
Crisis Pattern Rule Tables

One canonical rule table per crisis category, plus the weighted tables used
by the eating-concern scorer. Every rule carries a stable `pattern_id` that
is recorded in audit evidence, so ids must never be reused for a different
pattern. Bump RULESET_VERSION whenever a table changes.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from crisis_core.safety.models import CrisisType

RULESET_VERSION = "1.3.0"
DETECTION_METHOD = f"pattern-ruleset/{RULESET_VERSION}"

_APOSTROPHES = str.maketrans({
    "’": "'",
    "‘": "'",
    "ʼ": "'",
    "′": "'",
    "`": "'",
    "´": "'",
})
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase, unify apostrophe variants and collapse whitespace."""
    return _WHITESPACE.sub(" ", text.translate(_APOSTROPHES)).strip().lower()


@dataclass(frozen=True)
class CrisisRule:
    """
    A single lexical rule.

    escalation: an explicit phrase that lifts the category straight to its
        table severity (method mentions, imminent intent).
    weak: on its own, only ever worth a `low` severity.
    """

    pattern_id: str
    category: CrisisType
    pattern: str
    escalation: bool = False
    weak: bool = False
    regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "regex", re.compile(self.pattern, re.IGNORECASE))

    def search(self, text: str) -> Optional[re.Match]:
        return self.regex.search(text)


def _rules(category: CrisisType, entries: list[tuple]) -> list[CrisisRule]:
    """Build rules from (pattern_id, pattern[, flags]) tuples."""
    rules = []
    for entry in entries:
        pattern_id, pattern = entry[0], entry[1]
        flags = entry[2] if len(entry) > 2 else ""
        rules.append(CrisisRule(
            pattern_id=pattern_id,
            category=category,
            pattern=pattern,
            escalation="esc" in flags,
            weak="weak" in flags,
        ))
    return rules


# ==================================
# Suicide
# ==================================

SUICIDE_RULES = _rules(CrisisType.SUICIDE, [
    ("suicide.kill_myself", r"\bkill(ing)?\s+myself\b", "esc"),
    ("suicide.end_my_life", r"\b(end|ending|take|taking)\s+(my\s+(own\s+)?|this\s+)life\b", "esc"),
    ("suicide.want_to_die", r"\b(want|wanna|going|plan(ning)?|ready)\s+(to\s+)?die\b", "esc"),
    ("suicide.commit", r"\b(commit(ting)?|attempt(ing|ed)?)\s+suicide\b", "esc"),
    ("suicide.has_plan", r"\b(have|made|got)\s+a\s+plan\s+to\s+(die|kill\s+myself|end\s+it)\b", "esc"),
    ("suicide.method",
     r"\b(pills?|rope|gun|bridge|jump(ing)?|hang(ing)?)\b.{0,40}\b(end\s+it|kill\s+myself|die|suicide)\b", "esc"),
    ("suicide.intentional_overdose",
     r"\b(going\s+to|want\s+to|gonna|plan(ning)?\s+to)\s+(overdose|take\s+(all\s+)?(my|the|these|those)\s+pills)\b", "esc"),
    ("suicide.stockpiled_pills", r"\bhave\s+pills\b.{0,40}\b(take\s+them\s+all|overdose)\b", "esc"),
    ("suicide.mention", r"\bsuicid(e|al)\b"),
    ("suicide.not_worth_living", r"\bnot\s+worth\s+living\b"),
    ("suicide.dont_want_to_live", r"\bdon'?t\s+want\s+to\s+(live|be\s+alive|exist|be\s+here|wake\s+up)\b"),
    ("suicide.better_off_without_me", r"\bbetter\s+off\s+without\s+me\b"),
    ("suicide.wish_dead", r"\bwish\s+i\s+(was|were)\s+(dead|never\s+born)\b"),
    ("suicide.no_reason_to_live", r"\bno\s+reason\s+to\s+(live|go\s+on|keep\s+going)\b"),
    ("suicide.thoughts_of", r"\bthoughts?\s+of\s+(suicide|killing\s+myself|ending\s+it|dying)\b"),
    ("suicide.end_it_all", r"\bend\s+it\s+all\b"),
])


# ==================================
# Self-harm
# ==================================

SELF_HARM_RULES = _rules(CrisisType.SELF_HARM, [
    ("self_harm.cut_myself", r"\b(cut|cutting|slice|slicing)\s+(myself|my\s+(wrists?|arms?|legs?|skin))\b", "esc"),
    ("self_harm.burn_myself", r"\bburn(ing|ed)?\s+myself\b", "esc"),
    ("self_harm.imminent", r"\bgoing\s+to\s+(hurt|cut|harm|burn)\s+myself\b", "esc"),
    ("self_harm.hurt_myself", r"\b(hurt|hurting|harm|harming)\s+myself\b"),
    ("self_harm.named", r"\bself[-\s]?harm(ing)?\b"),
    ("self_harm.urge", r"\burge\s+to\b.{0,20}\b(cut|hurt|harm|burn)\b"),
    ("self_harm.thinking_cutting", r"\bthinking\s+about\b.{0,20}\bcutting\b"),
    ("self_harm.punish_body", r"\bpunish(ing)?\s+my(self|\s+body)\b", "weak"),
])


# ==================================
# Substance use
# ==================================

SUBSTANCE_RULES = _rules(CrisisType.SUBSTANCE_USE, [
    ("substance.overdose", r"\boverdos(e|ed|ing)\b", "esc"),
    ("substance.cant_stop", r"\bcan'?t\s+stop\s+(drinking|using|taking)\b", "esc"),
    ("substance.mixing", r"\bmix(ing|ed)?\s+(pills|drugs)\b.{0,20}\b(alcohol|drinking|booze)\b", "esc"),
    ("substance.addicted", r"\baddict(ed|ion)\b"),
    ("substance.withdrawal", r"\bwithdrawals?\b"),
    ("substance.relapse", r"\brelaps(e|ed|ing)\b"),
    ("substance.hard_drugs", r"\b(heroin|fentanyl|cocaine|crack|meth)\b"),
    ("substance.alcoholic", r"\balcoholic\b"),
    ("substance.problem", r"\b(drug|drinking|alcohol)\s+problem\b|\bsubstance\s+abuse\b"),
    ("substance.need_more", r"\bneed\b.{0,15}\bmore\s+(drugs|pills|booze)\b"),
    ("substance.heavy_drinking", r"\bdrinking\s+(a\s+lot|too\s+much|every\s+day)\b", "weak"),
])


# ==================================
# General distress (only used when nothing specific matched)
# ==================================

GENERAL_RULES = _rules(CrisisType.GENERAL_CRISIS, [
    ("general.breakdown", r"\b(having|in)\s+(a\s+)?(mental|nervous)\s+(breakdown|crisis)\b", "esc"),
    ("general.not_safe", r"\b(don'?t|do\s+not)\s+feel\s+safe\b", "esc"),
    ("general.voices", r"\bvoices\b.{0,20}\btelling\s+me\b", "esc"),
    ("general.seeing_things", r"\bseeing\s+things\b.{0,20}\baren'?t\s+there\b", "esc"),
    ("general.cant_take_it", r"\bcan'?t\s+(take|handle|do)\s+(it|this)\s+any\s*more\b"),
    ("general.cant_cope", r"\bcan'?t\s+cope\b"),
    ("general.in_crisis", r"\b(i'?m|i\s+am)\s+(in\s+(a\s+)?crisis|falling\s+apart)\b"),
    ("general.giving_up", r"\bgiving\s+up\s+on\s+(everything|life)\b"),
    ("general.hopeless", r"\bhopeless\b", "weak"),
    ("general.panic", r"\bpanic\s+attacks?\b", "weak"),
])


# Evaluated in this order; evidence order follows it.
CRISIS_RULES: list[CrisisRule] = [
    *SUICIDE_RULES,
    *SELF_HARM_RULES,
    *SUBSTANCE_RULES,
    *GENERAL_RULES,
]


# ==================================
# Eating concern tables
# ==================================

# Explicit high-risk phrases. Never suppressed by small talk.
EATING_EXPLICIT_RULES = _rules(CrisisType.EATING_DISORDER, [
    ("eating.not_eaten_days",
     r"\b(haven'?t|have\s+not|not)\s+(eaten|had\s+(any\s+)?food)\s+(anything\s+)?(in|for)\s+(\w+\s+)?(days?|weeks?)\b", "esc"),
    ("eating.refusing_food", r"\b(refuse|refusing)\s+to\s+eat\b", "esc"),
    ("eating.purging",
     r"\b(make|made|making)\s+myself\s+(throw\s+up|vomit|purge|sick)\b|\bpurg(e|ed|ing)\b|\bthrow(ing)?\s+up\s+(after\s+(i\s+)?eat|my\s+food|food)", "esc"),
    ("eating.starving_self", r"\bstarv(e|ed|ing)\s+myself\b", "esc"),
    ("eating.laxatives", r"\b(use|using|took|take|taking)\s+laxatives\b", "esc"),
    ("eating.named_disorder", r"\b(anorexi[ac]|bulimi[ac]|binge[-\s]eating|eating\s+disorder)\b", "esc"),
])

# Concerning phrases, weight 1.0 each
EATING_PHRASE_RULES = _rules(CrisisType.EATING_DISORDER, [
    ("eating.feel_fat", r"\bi\s+feel\s+fat\b"),
    ("eating.need_to_lose_weight", r"\bi\s+need\s+to\s+lose\s+weight\b"),
    ("eating.not_eaten_today", r"\bi\s+haven'?t\s+eaten\s+(all\s+day|today|since)\b"),
    ("eating.ate_too_much", r"\bi\s+ate\s+too\s+much\b"),
    ("eating.fear_of_gaining", r"\bscared\s+of\s+(gaining|weight)\b"),
    ("eating.hate_my_body", r"\bhate\s+my\s+body\b"),
    ("eating.not_eating", r"\bi'?m\s+not\s+(hungry|eating)\b"),
    ("eating.burn_calories", r"\bburn\s+(off|these|the)\s+calories\b"),
    ("eating.cant_stop_eating", r"\bcan'?t\s+stop\s+eating\b"),
    ("eating.guilt_after_eating", r"\bfeel\s+guilty\s+(after|about|when)\s+eat"),
    ("eating.trying_to_be_thinner", r"\btrying\s+to\s+be\s+(healthier|skinnier|thinner)\b"),
    ("eating.on_a_diet", r"\bon\s+a\s+diet\b"),
    ("eating.cutting_out", r"\bcutting\s+(out|down)\s+(carbs|food|calories|sugar)\b"),
    ("eating.cleanse", r"\b(doing|on)\s+a\s+cleanse\b"),
    ("eating.eat_clean", r"\beat(ing)?\s+clean\b"),
    ("eating.no_control", r"\bcan'?t\s+control\s+(myself|around\s+food)\b"),
    ("eating.ate_the_whole", r"\bate\s+the\s+whole\b"),
    ("eating.full_but_eating", r"\b(so|too)\s+full,?\s+but\s+(keep|still)\s+eat"),
    ("eating.out_of_control", r"\bout\s+of\s+control\s+when\s+i\s+eat\b"),
    ("eating.excessive_exercise", r"\bexercise\s+(excessively|too\s+much|after\s+eating)\b"),
    ("eating.look_disgusting", r"\blook\s+disgusting\b"),
    ("eating.too_big", r"\bi'?m\s+too\s+(big|fat|heavy)\b"),
    ("eating.wish_thinner", r"\bwish\s+i\s+(was|were)\s+(thinner|smaller|skinnier)\b"),
    ("eating.counting", r"\bcount(ing)?\s+(calories|points|macros)\b"),
    ("eating.skipping_meals", r"\bskip(ping|ped)?\s+(meals|breakfast|lunch|dinner)\b"),
    ("eating.food_rules", r"\bfood\s+(rules|rituals?)\b"),
    ("eating.weighing_myself", r"\bweighing\s+myself\b"),
    ("eating.body_checking", r"\bbody\s+check(ing)?\b"),
])

# Bare keywords, weight 0.5 each. Anchored keywords are food/body specific;
# the rest only count once an anchored signal is present.
EATING_KEYWORDS: list[tuple[str, bool]] = [
    ("fat", True),
    ("lose weight", True),
    ("diet", True),
    ("calories", True),
    ("purge", True),
    ("throw up", True),
    ("vomit", True),
    ("starve", True),
    ("binge", True),
    ("laxative", True),
    ("cleanse", True),
    ("clean eating", True),
    ("restrict", True),
    ("hungry", True),
    ("thinner", True),
    ("skinny", True),
    ("burn", False),
    ("guilty", False),
    ("disgusting", False),
    ("control", False),
    ("exercise", False),
]

# Contextual risk markers, weight 0.5 each
EATING_CONTEXT_MARKERS: list[tuple[str, str]] = [
    ("absolutist", r"\b(always|every\s*day|constantly|never)\b"),
    ("rigid_thinking", r"\b(have\s+to|need\s+to|must|should)\b"),
    ("emotional_distress", r"\b(terrified|scared|afraid|anxious)\b"),
    ("restriction", r"\b(avoid\w*|won'?t\s+allow|can'?t\s+have)\b"),
    ("rumination", r"\b(obsess\w*|fixat\w*|think\s+about|worry\w*)\b"),
    ("earning_food", r"\b(punish\w*|deserve\w*|earn\w*|reward\w*)\b"),
    ("self_criticism", r"\b(failure|failed|messed\s+up|bad)\b"),
    ("weight_focus", r"\bweight\s+(gain|loss|change)\b"),
]

# Benign food conversation
FOOD_SMALL_TALK_PATTERNS: list[str] = [
    r"\blove\s+(food|eating|cooking|baking)\b",
    r"\bfavorite\s+(food|meal|restaurant|dish|recipe)\b",
    r"\btry(ing)?\s+(a\s+new|this)\s+recipe\b",
    r"\bcook(ing|ed)\s+(dinner|lunch|breakfast)\b",
    r"\beat(ing)?\s+out\b",
    r"\brestaurant\s+recommendations?\b",
    r"\bbest\s+place\s+to\s+eat\b",
    r"\bfood\s+was\s+(amazing|great|good|delicious)\b",
    r"\benjoy(ed)?\s+(my\s+meal|dinner|lunch|breakfast)\b",
    r"\bwhat\s+(should\s+i|to)\s+(eat|have|cook)\s+for\b",
    r"\bgrocery\s+shopping\b",
    r"\bfood\s+(preference|allerg(y|ies)|sensitivit(y|ies))\b",
    r"\b(vegetarian|vegan|pescatarian|omnivore)\b",
    r"\b(gluten|dairy|nut)[-\s]free\b",
]

# Cleveland-area food culture
LOCAL_FOOD_CONTEXTS: list[str] = [
    r"\bwest\s+side\s+market\b",
    r"\blittle\s+italy\b",
    r"\btremont\b",
    r"\bohio\s+city\b",
    r"\bpierogi(es|s)?\b",
    r"\bpolish\s+food\b",
    r"\bcorned\s+beef\b",
    r"\bslyman'?s\b",
    r"\bgreat\s+lakes\s+brewing\b",
    r"\bmitchell'?s\s+ice\s+cream\b",
    r"\bmelt\s+bar\b",
    r"\bcleveland\s+food\b",
    r"\blakewood\s+restaurants?\b",
    r"\bbarrio\b",
    r"\bsokolowski'?s\b",
    r"\btommy'?s\b",
    r"\bhot\s+sauce\s+williams\b",
    r"\blido\s+lounge\b",
    r"\beast\s+4th\b",
]


# ==================================
# Synthetic rules
# ==================================

# Evidence emitted by the eating scorer and by the classifier's error guard
# rather than by a single lexical hit.
EATING_HIGH_RISK_RULE = CrisisRule(
    pattern_id="eating.risk.high",
    category=CrisisType.EATING_DISORDER,
    pattern=r"(?!)",
    escalation=True,
)
EATING_MODERATE_RISK_RULE = CrisisRule(
    pattern_id="eating.risk.moderate",
    category=CrisisType.EATING_DISORDER,
    pattern=r"(?!)",
)
FALLBACK_RULE = CrisisRule(
    pattern_id="classifier.fallback",
    category=CrisisType.GENERAL_CRISIS,
    pattern=r"suicid|kill|harm|hurt|die|dead|eating|drink",
    escalation=True,
)


RULE_INDEX: dict[str, CrisisRule] = {
    rule.pattern_id: rule
    for rule in [
        *CRISIS_RULES,
        *EATING_EXPLICIT_RULES,
        *EATING_PHRASE_RULES,
        EATING_HIGH_RISK_RULE,
        EATING_MODERATE_RISK_RULE,
        FALLBACK_RULE,
    ]
}


def lookup_rule(pattern_id: str) -> Optional[CrisisRule]:
    """Find the rule that produced a piece of evidence."""
    return RULE_INDEX.get(pattern_id)


# ==================================
# Resource refusal
# ==================================

REFUSAL_PATTERNS: list[re.Pattern] = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"\b(won'?t|will\s+not|not\s+going\s+to|don'?t\s+want\s+to|refuse\s+to|not\s+ready\s+to)\s+"
        r"(call|text|contact|reach\s+out|go\s+to\s+(the\s+)?(hospital|er|emergency\s+room))\b",
        r"\b(not\s+interested\s+in|not\s+ready\s+for|don'?t\s+need|don'?t\s+want)\s+(a\s+|the\s+|any\s+)?"
        r"(help|hotlines?|988|therap(y|ist)|counsel(l?ing|or)|hospital|treatment|resources?)\b",
        r"\bno\s+(hotlines?|therap(y|ists?)|hospitals?|988|counsel(l?ors?|ing))\b",
    ]
]
