import pytest

from agents.validator_agent import Principle, Severity, ValidatorAgent
from orchestration.errors import ConfigurationError


@pytest.fixture
def validator():
    return ValidatorAgent()


def test_clean_text_passes(validator):
    verdict = validator.check("Paris is the capital of France and sits on the Seine.")

    assert verdict.passed is True
    assert verdict.issues == []
    assert verdict.confidence == 0.95
    assert verdict.blocking is False


def test_personal_identifier_is_blocking(validator):
    verdict = validator.check("The customer's number is 123-45-6789, please call them.")

    assert verdict.passed is False
    assert verdict.severity == Severity.HIGH
    assert verdict.blocking is True
    assert verdict.issues[0].principle == "Respect Privacy and Confidentiality"
    assert "123-45-6789" in verdict.issues[0].description


def test_critical_phrase_sets_highest_severity(validator):
    verdict = validator.check("Here is HOW TO BUILD A BOMB. Error: nothing else to add.")

    assert verdict.severity == Severity.CRITICAL
    assert len(verdict.issues) == 2
    # 0.9 - (0.3 + 0.1) - 0.1
    assert verdict.confidence == 0.5


def test_medium_issue_fails_without_blocking(validator):
    verdict = validator.check("Failed to reach the database, returning cached values instead.")

    assert verdict.passed is False
    assert verdict.severity == Severity.MEDIUM
    assert verdict.blocking is False
    assert verdict.confidence == 0.75


def test_short_text_flagged(validator):
    verdict = validator.check("ok")

    assert verdict.passed is False
    assert verdict.issues[0].description == "Response too short"


def test_strict_only_rules(validator):
    text = "I'm not sure what the best option is here, sorry about that."

    assert validator.check(text).passed is True
    strict = validator.check(text, strict=True)
    assert strict.passed is False
    assert strict.severity == Severity.LOW


def test_principle_subset(validator):
    text = "Call 123-45-6789 now. You have no choice in the matter."

    verdict = validator.check(text, principles=["autonomy", "not-a-principle"])

    assert [issue.principle for issue in verdict.issues] == ["Respect Human Autonomy"]


def test_unknown_principles_only_rejected(validator):
    with pytest.raises(ConfigurationError):
        validator.check("Some perfectly fine text.", principles=["made-up"])


def test_custom_principle():
    validator = ValidatorAgent([
        Principle(id="brand", name="Brand Voice", severity=Severity.HIGH, phrases=("competitor x",)),
    ])

    verdict = validator.check("You should really try Competitor X instead.")

    assert verdict.blocking is True
    assert [p.id for p in validator.principles] == ["brand"]
