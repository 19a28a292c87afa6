"""
Ambiguity Classifier.

Decides whether a request can go straight to SQL generation or needs a
clarifying question first. The decision is an ordered list of rules; the
first rule that returns a result wins:

    1. BrevityRule        fewer than 3 words
    2. JoinRule           an explicit join, most specific pattern first
    3. DuplicateRule      the request talks about duplicates
    4. AspectRule         keyword tables (time period, ranking, grouping, ...)
    5. GeneralCheckRule   ask the generation service

Rules are independent objects so each can be tested on its own and the order
can be changed in one place (DEFAULT_RULES). Rules that call the generation
service never raise: they fall back to templated questions, and the general
check degrades to "no clarification".
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence, Tuple

from clarisql.models import ClassificationResult

from .llm_client import GenerationClient, GenerationError, GenerationKind, build_request

logger = logging.getLogger("clarisql.ambiguity")


# ============================================================
# RULE TABLES
# ============================================================

MIN_QUERY_TOKENS = 3

BREVITY_QUESTION = "Your query seems brief. Could you provide more details about what you want to know?"

DUPLICATE_QUESTION = (
    "I noticed your query might involve duplicate data. "
    "Would you like to include or exclude duplicates in the results?"
)

GENERAL_DEFAULT_QUESTION = "Could you provide more details about your request?"

# Most specific first: a plain "join" must not shadow "left join" and friends
JOIN_PATTERNS: Tuple[Tuple[Pattern, str], ...] = (
    (re.compile(r"\bleft\s+(?:outer\s+)?join\b", re.IGNORECASE), "left join"),
    (re.compile(r"\bright\s+(?:outer\s+)?join\b", re.IGNORECASE), "right join"),
    (re.compile(r"\bfull\s+(?:outer\s+)?join\b", re.IGNORECASE), "full join"),
    (re.compile(r"\bcross\s+join\b", re.IGNORECASE), "cross join"),
    (re.compile(r"\b(?:inner\s+)?join\b", re.IGNORECASE), "inner join"),
)

DUPLICATE_PATTERN = re.compile(r"\bduplicates?\b", re.IGNORECASE)

AMBIGUITY_ASPECTS: Tuple[Tuple[Pattern, str], ...] = (
    (re.compile(r"\b(?:show|display|get)\b", re.IGNORECASE), "time period"),
    (re.compile(r"\b(?:sales|revenue|amount)\b", re.IGNORECASE), "product specificity"),
    (re.compile(r"\bcustomers?\b", re.IGNORECASE), "customer segmentation"),
    (re.compile(r"\b(?:compare|comparison)\b", re.IGNORECASE), "comparison metrics"),
    (re.compile(r"\b(?:top|best|highest)\b", re.IGNORECASE), "result count and ranking criteria"),
    (re.compile(r"\b(?:average|avg|mean)\b", re.IGNORECASE), "grouping and calculation method"),
)


def _article(noun: str) -> str:
    return "an" if noun[:1].lower() in "aeiou" else "a"


def mentioned_tables(query: str, snapshot) -> List[str]:
    """Schema tables named in the query (plural or singular form), in the order they appear."""
    positions = []
    for table in snapshot.table_names:
        forms = {table, table[:-1] if table.endswith("s") else table}
        pattern = r"\b(?:" + "|".join(re.escape(f) for f in sorted(forms, key=len, reverse=True)) + r")\b"
        match = re.search(pattern, query, re.IGNORECASE)
        if match:
            positions.append((match.start(), table))
    return [table for _, table in sorted(positions)]


def fallback_join_question(join_type: str, tables: Sequence[str] = ()) -> str:
    """Templated join question used when the generation service is unavailable."""
    if len(tables) >= 2:
        return (
            f"I noticed you want to perform {_article(join_type)} {join_type} between "
            f"{tables[0]} and {tables[1]}. Could you specify which columns to join on?"
        )
    return (
        f"I noticed you want to perform {_article(join_type)} {join_type}. "
        "Could you specify which tables you want to join and on which columns?"
    )


def fallback_aspect_question(aspect: str) -> str:
    return f"Could you provide more details about the {aspect} in your query?"


# ============================================================
# RULES
# ============================================================

@dataclass
class RuleContext:
    """Everything a rule may look at besides the query text."""
    snapshot: object
    relationships: object
    generator: GenerationClient

    def request(self, query: str, **fields):
        return build_request(self.snapshot, self.relationships, query, **fields)


class AmbiguityRule:
    """Base class: return a ClassificationResult to stop evaluation, or None to pass."""
    name = "rule"

    def evaluate(self, query: str, context: RuleContext) -> Optional[ClassificationResult]:
        raise NotImplementedError


class BrevityRule(AmbiguityRule):
    name = "brevity"

    def evaluate(self, query, context):
        if len(query.split()) >= MIN_QUERY_TOKENS:
            return None
        return ClassificationResult(needs_clarification=True, question=BREVITY_QUESTION, rule=self.name)


class JoinRule(AmbiguityRule):
    name = "join"

    def __init__(self, patterns: Sequence[Tuple[Pattern, str]] = JOIN_PATTERNS):
        self.patterns = patterns

    def detect(self, query: str) -> Optional[str]:
        for pattern, join_type in self.patterns:
            if pattern.search(query):
                return join_type
        return None

    def evaluate(self, query, context):
        join_type = self.detect(query)
        if join_type is None:
            return None

        try:
            question = context.generator.generate(
                GenerationKind.JOIN_CLARIFICATION_QUESTION,
                context.request(query, join_type=join_type),
            )
        except GenerationError as e:
            logger.warning("Join question generation failed, using template: %s", e)
            question = fallback_join_question(join_type, mentioned_tables(query, context.snapshot))

        return ClassificationResult(
            needs_clarification=True,
            question=question,
            join_type=join_type,
            rule=self.name,
        )


class DuplicateRule(AmbiguityRule):
    name = "duplicate"

    def evaluate(self, query, context):
        if not DUPLICATE_PATTERN.search(query):
            return None
        return ClassificationResult(
            needs_clarification=True,
            question=DUPLICATE_QUESTION,
            duplicate_handling=True,
            rule=self.name,
        )


class AspectRule(AmbiguityRule):
    name = "aspect"

    def __init__(self, aspects: Sequence[Tuple[Pattern, str]] = AMBIGUITY_ASPECTS):
        self.aspects = aspects

    def detect(self, query: str) -> Optional[str]:
        for pattern, aspect in self.aspects:
            if pattern.search(query):
                return aspect
        return None

    def evaluate(self, query, context):
        aspect = self.detect(query)
        if aspect is None:
            return None

        try:
            question = context.generator.generate(
                GenerationKind.CLARIFICATION_QUESTION,
                context.request(query, aspect=aspect),
            )
        except GenerationError as e:
            logger.warning("Clarification question generation failed, using template: %s", e)
            question = fallback_aspect_question(aspect)

        return ClassificationResult(
            needs_clarification=True,
            question=question,
            aspect=aspect,
            rule=self.name,
        )


class GeneralCheckRule(AmbiguityRule):
    name = "general"

    def evaluate(self, query, context):
        try:
            check = context.generator.check_general_clarification(context.request(query))
        except GenerationError as e:
            # An unusable check must not block the request
            logger.warning("General clarification check unusable, proceeding without clarification: %s", e)
            return None

        if not check.needs_clarification:
            return None
        return ClassificationResult(
            needs_clarification=True,
            question=(check.question or "").strip() or GENERAL_DEFAULT_QUESTION,
            rule=self.name,
        )


DEFAULT_RULES: Tuple[AmbiguityRule, ...] = (
    BrevityRule(),
    JoinRule(),
    DuplicateRule(),
    AspectRule(),
    GeneralCheckRule(),
)


# ============================================================
# CLASSIFIER
# ============================================================

class AmbiguityClassifier:
    """Evaluates the rules in order; the first match decides."""

    def __init__(self, generator: GenerationClient, rules: Sequence[AmbiguityRule] = DEFAULT_RULES):
        self.generator = generator
        self.rules = list(rules)

    def classify(self, query: str, snapshot, relationships) -> ClassificationResult:
        context = RuleContext(snapshot=snapshot, relationships=relationships, generator=self.generator)
        for rule in self.rules:
            result = rule.evaluate(query, context)
            if result is not None:
                logger.info("Rule '%s' requested clarification", rule.name)
                return result
        return ClassificationResult(needs_clarification=False)
