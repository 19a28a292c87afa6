"""Tests for the ambiguity rules and their ordering."""
import pytest

from clarisql.models import ColumnInfo
from clarisql.orchestrator import GenerationError, GenerationKind
from clarisql.orchestrator.ambiguity import (
    BREVITY_QUESTION,
    DUPLICATE_QUESTION,
    GENERAL_DEFAULT_QUESTION,
    AmbiguityClassifier,
    AspectRule,
    BrevityRule,
    DuplicateRule,
    GeneralCheckRule,
    JoinRule,
    RuleContext,
    fallback_join_question,
    mentioned_tables,
)
from clarisql.tools import SchemaSnapshot, infer_relationships


@pytest.fixture
def snapshot():
    return SchemaSnapshot.build("shop", {
        "customers": [ColumnInfo(name="id", data_type="INTEGER"), ColumnInfo(name="name", data_type="TEXT")],
        "orders": [ColumnInfo(name="id", data_type="INTEGER"), ColumnInfo(name="customer_id", data_type="INTEGER")],
    })


@pytest.fixture
def classify(snapshot):
    """classify(query, generator) -> ClassificationResult with the default rules."""
    relationships = infer_relationships(snapshot)

    def _classify(query, generator):
        return AmbiguityClassifier(generator).classify(query, snapshot, relationships)
    return _classify


def _context(snapshot, generator):
    return RuleContext(snapshot=snapshot, relationships=infer_relationships(snapshot), generator=generator)


# =============================================================================
# INDIVIDUAL RULES
# =============================================================================

class TestBrevityRule:

    @pytest.mark.parametrize("query", ["sales", "show sales", "  orders   today  "])
    def test_fewer_than_three_words(self, snapshot, scripted_generator, query):
        result = BrevityRule().evaluate(query, _context(snapshot, scripted_generator()))
        assert result.needs_clarification
        assert result.question == BREVITY_QUESTION

    def test_three_words_pass(self, snapshot, scripted_generator):
        assert BrevityRule().evaluate("list all customers", _context(snapshot, scripted_generator())) is None


class TestJoinRule:

    @pytest.mark.parametrize("query, expected", [
        ("left join orders with customers", "left join"),
        ("do a LEFT OUTER JOIN of orders", "left join"),
        ("right join customers to orders", "right join"),
        ("full outer join orders and customers", "full join"),
        ("cross join products and customers", "cross join"),
        ("inner join orders and customers", "inner join"),
        ("join orders and customers", "inner join"),
    ])
    def test_detects_join_type(self, query, expected):
        assert JoinRule().detect(query) == expected

    def test_join_must_be_a_word(self):
        assert JoinRule().detect("list customers who joined last week") is None

    def test_generated_question_is_used(self, snapshot, scripted_generator):
        generator = scripted_generator({
            GenerationKind.JOIN_CLARIFICATION_QUESTION: "Join orders.customer_id to customers.id?",
        })
        result = JoinRule().evaluate("left join orders and customers", _context(snapshot, generator))

        assert result.question == "Join orders.customer_id to customers.id?"
        assert result.join_type == "left join"
        assert "left join" in generator.prompts_for(GenerationKind.JOIN_CLARIFICATION_QUESTION)[0]

    def test_fallback_question_names_the_tables(self, snapshot, scripted_generator):
        generator = scripted_generator({
            GenerationKind.JOIN_CLARIFICATION_QUESTION: GenerationError("503 Service Unavailable"),
        })
        result = JoinRule().evaluate("join orders and customers", _context(snapshot, generator))

        assert result.needs_clarification
        assert result.join_type == "inner join"
        assert result.question == (
            "I noticed you want to perform an inner join between orders and customers. "
            "Could you specify which columns to join on?"
        )


class TestDuplicateRule:

    @pytest.mark.parametrize("query", ["orders with duplicate customers", "remove Duplicates from orders"])
    def test_flags_duplicate_handling(self, snapshot, scripted_generator, query):
        result = DuplicateRule().evaluate(query, _context(snapshot, scripted_generator()))
        assert result.question == DUPLICATE_QUESTION
        assert result.duplicate_handling is True

    def test_no_mention_passes(self, snapshot, scripted_generator):
        assert DuplicateRule().evaluate("list all orders", _context(snapshot, scripted_generator())) is None


class TestAspectRule:

    @pytest.mark.parametrize("query, aspect", [
        ("show me sales", "time period"),
        ("total revenue by month", "product specificity"),
        ("list every customer name", "customer segmentation"),
        ("compare this year and last", "comparison metrics"),
        ("the top five products", "result count and ranking criteria"),
        ("average order value please", "grouping and calculation method"),
    ])
    def test_detects_first_matching_aspect(self, query, aspect):
        assert AspectRule().detect(query) == aspect

    def test_keywords_match_whole_words(self):
        assert AspectRule().detect("list the laptops in stock") is None

    def test_generation_failure_uses_template(self, snapshot, scripted_generator):
        generator = scripted_generator({GenerationKind.CLARIFICATION_QUESTION: GenerationError("timeout")})
        result = AspectRule().evaluate("top five products", _context(snapshot, generator))

        assert result.aspect == "result count and ranking criteria"
        assert result.question == (
            "Could you provide more details about the result count and ranking criteria in your query?"
        )


class TestGeneralCheckRule:

    def test_asks_when_service_says_so(self, snapshot, scripted_generator):
        generator = scripted_generator({
            GenerationKind.GENERAL_CLARIFICATION_CHECK: '{"needs_clarification": true, "question": "Which store?"}',
        })
        result = GeneralCheckRule().evaluate("list orders for the store", _context(snapshot, generator))
        assert result.question == "Which store?"

    def test_blank_question_gets_default(self, snapshot, scripted_generator):
        generator = scripted_generator({
            GenerationKind.GENERAL_CLARIFICATION_CHECK: '{"needs_clarification": true, "question": "  "}',
        })
        result = GeneralCheckRule().evaluate("list orders for the store", _context(snapshot, generator))
        assert result.question == GENERAL_DEFAULT_QUESTION

    @pytest.mark.parametrize("response", [
        "not json at all",
        GenerationError("connection reset"),
    ])
    def test_unusable_check_means_no_clarification(self, snapshot, scripted_generator, response):
        generator = scripted_generator({GenerationKind.GENERAL_CLARIFICATION_CHECK: response})
        assert GeneralCheckRule().evaluate("list orders for the store", _context(snapshot, generator)) is None


# =============================================================================
# ORDERING
# =============================================================================

class TestClassifierOrdering:

    def test_brevity_beats_everything(self, classify, scripted_generator):
        generator = scripted_generator()
        result = classify("join duplicates", generator)

        assert result.rule == "brevity"
        assert generator.calls == []

    def test_join_beats_duplicates(self, classify, scripted_generator):
        generator = scripted_generator({GenerationKind.JOIN_CLARIFICATION_QUESTION: "Which columns?"})
        result = classify("join orders and customers without duplicates", generator)
        assert result.rule == "join"
        assert result.duplicate_handling is False

    def test_duplicates_beat_aspects(self, classify, scripted_generator):
        generator = scripted_generator()
        result = classify("show duplicate customers", generator)

        assert result.rule == "duplicate"
        assert generator.calls == []

    def test_aspect_beats_general_check(self, classify, scripted_generator):
        generator = scripted_generator({GenerationKind.CLARIFICATION_QUESTION: "For which period?"})
        result = classify("show me sales", generator)

        assert result.rule == "aspect"
        assert result.question == "For which period?"
        assert GenerationKind.GENERAL_CLARIFICATION_CHECK not in generator.kinds

    def test_clear_request_needs_nothing(self, classify, scripted_generator):
        generator = scripted_generator()
        result = classify("list all orders", generator)

        assert result.needs_clarification is False
        assert generator.kinds == [GenerationKind.GENERAL_CLARIFICATION_CHECK]

    def test_custom_rule_order(self, snapshot, scripted_generator):
        classifier = AmbiguityClassifier(scripted_generator(), rules=[DuplicateRule(), BrevityRule()])
        result = classifier.classify("duplicates", snapshot, infer_relationships(snapshot))
        assert result.rule == "duplicate"


class TestHelpers:

    def test_mentioned_tables_in_query_order(self, snapshot):
        assert mentioned_tables("join the customer table with orders", snapshot) == ["customers", "orders"]
        assert mentioned_tables("join orders and customers", snapshot) == ["orders", "customers"]

    def test_fallback_join_question_without_tables(self):
        assert fallback_join_question("left join") == (
            "I noticed you want to perform a left join. "
            "Could you specify which tables you want to join and on which columns?"
        )
