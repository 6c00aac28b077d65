import pytest

from action_hub.core.errors import InvalidNameError, NameCollisionError
from action_hub.core.models import (
    DEFAULT_COUNTDOWN_S,
    Category,
    CountdownTimer,
    ToDoItem,
    ValidationAction,
    WorkItem,
)
from action_hub.core.templates import create_from_template, validate_name


def test_validate_name_strips_whitespace():
    assert validate_name("  Fix lights  ") == "Fix lights"


@pytest.mark.parametrize("bad", ["", "   ", None, "a/b", "what?", "pipe|name", "tab\tname"])
def test_validate_name_rejects_unusable_names(bad):
    with pytest.raises(InvalidNameError):
        validate_name(bad)


def test_create_copies_defaults_and_resets_template():
    cat = Category(name="Quality")
    template = ValidationAction(
        name="Validate Template",
        display_name="Check doors",
        description="Every door needs a key",
        category=cat,
        priority=40,
        subject="game.props:Door",
        scope=("Level1",),
    )
    assert template.is_template

    item = create_from_template(template, "Doors L1")

    assert type(item) is ValidationAction
    assert item.name == "Doors L1"
    assert item.is_template is False
    assert item.display_name == "Check doors"
    assert item.description == "Every door needs a key"
    assert item.category is cat
    assert item.priority == 40
    assert item.subject == "game.props:Door"
    assert item.scope == ("Level1",)

    # template is ready for the next item
    assert template.display_name == ""
    assert template.description == ""
    assert template.subject == ""
    assert template.is_template


def test_display_name_falls_back_to_name():
    template = ToDoItem(name="Note Template")
    item = create_from_template(template, "Buy milk")
    assert item.display_name == "Buy milk"
    assert isinstance(item, ToDoItem)
    assert not item.is_complete


def test_type_specific_defaults_are_copied():
    template = CountdownTimer(name="Focus Template", duration_s=600)
    item = create_from_template(template, "Focus block")
    assert item.duration_s == 600
    assert not item.is_running
    assert template.duration_s == DEFAULT_COUNTDOWN_S


def test_collision_rejects_without_mutation():
    template = WorkItem(name="Task Template", display_name="seed text", description="desc")
    siblings = [WorkItem(name="Existing")]
    with pytest.raises(NameCollisionError) as e:
        create_from_template(template, "Existing", siblings)
    assert "Existing" in str(e.value)
    assert template.display_name == "seed text"
    assert template.description == "desc"


def test_invalid_name_rejects_without_mutation():
    template = WorkItem(name="Task Template", display_name="seed text")
    with pytest.raises(InvalidNameError):
        create_from_template(template, "bad:name")
    assert template.display_name == "seed text"
