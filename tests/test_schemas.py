"""Unit tests for the core schema building blocks."""

import pytest
from pydantic import ValidationError

from campfire.schemas import ActionRecord, ActionResult, Decision, ErrorKind, Item, Vitals


def test_vitals_reject_out_of_range_assignment():
    vitals = Vitals(food=50)
    vitals.food = 0
    with pytest.raises(ValidationError):
        vitals.food = 101
    with pytest.raises(ValidationError):
        Vitals(warmth=-1)
    assert vitals.as_dict() == {"food": 0, "energy": 100, "warmth": 100, "health": 100}


def test_items_are_immutable():
    item = Item(type="apple")
    with pytest.raises(ValidationError):
        item.type = "berry"


def test_action_result_summary_includes_inner_failure():
    inner = ActionResult.fail(ErrorKind.TARGET_NOT_FOUND)
    result = ActionResult.fail(ErrorKind.NAVIGATION_FAILED, inner=inner)

    assert ActionResult.ok().summary() == "ok"
    assert result.summary() == "navigation_failed (target_not_found)"


def test_action_result_carries_extra_fields():
    result = ActionResult.ok(fuel=80.0)
    assert result.fuel == 80.0


def test_decision_accepts_camel_case_and_loose_fields():
    decision = Decision.model_validate(
        {"nextAction": {"name": "sleep", "args": None}, "plan": None, "bubble": {"text": "zzz"}}
    )

    assert decision.next_action.name == "sleep"
    assert decision.next_action.args == {}
    assert decision.plan == []
    assert decision.bubble.emoji == ""


def test_action_record_describe():
    record = ActionRecord(name="collect", args={"target": "tree"}, started_at=0)
    assert record.describe() == "collect(target='tree') -> in progress"

    record.pending = False
    record.result = ActionResult.fail(ErrorKind.INVENTORY_FULL)
    assert record.describe() == "collect(target='tree') -> inventory_full"
