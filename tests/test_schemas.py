import pytest
from pydantic import ValidationError

from schemas import Category, CategoryUpdate, ContactSubmission, PortfolioItem, PortfolioItemUpdate


def test_portfolio_item_requires_all_fields():
    with pytest.raises(ValidationError) as exc:
        PortfolioItem(title="A")
    missing = {e["loc"][0] for e in exc.value.errors()}
    assert missing == {"description", "category", "image"}


def test_whitespace_only_is_empty():
    with pytest.raises(ValidationError):
        PortfolioItem(title="   ", description="d", category="c", image="i")


def test_values_are_stripped():
    assert PortfolioItem(title=" A ", description="d", category="video", image="i").title == "A"


def test_category_default_color_and_alias():
    cat = Category(name="video", displayName="Video Editing")
    assert cat.color == "blue"
    assert cat.model_dump(by_alias=True) == {"name": "video", "displayName": "Video Editing", "color": "blue"}


def test_partial_updates_only_carry_given_fields():
    assert PortfolioItemUpdate(title="New").changes() == {"title": "New"}
    assert CategoryUpdate(displayName="Design").changes() == {"displayName": "Design"}


def test_contact_email_checked():
    with pytest.raises(ValidationError):
        ContactSubmission(name="A", email="not-an-email", message="m")
    assert ContactSubmission(name="A", email="a@gmail.com", message="m").email == "a@gmail.com"
