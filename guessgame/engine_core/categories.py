"""
Categories - Predefined categories with suggested secret words.

The answerer may pick any word; these are offered as suggestions.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class GameCategory:
    name: str
    suggested_words: tuple[str, ...]


PREDEFINED_CATEGORIES: tuple[GameCategory, ...] = (
    GameCategory("People", (
        "Albert Einstein", "Taylor Swift", "Leonardo da Vinci", "Oprah Winfrey",
        "Michael Jordan", "Marie Curie", "Steve Jobs", "Shakespeare",
    )),
    GameCategory("Places", (
        "Paris", "Tokyo", "New York", "London", "Sydney", "Cairo",
        "Rome", "Barcelona", "Amsterdam", "Dubai",
    )),
    GameCategory("Animals", (
        "Elephant", "Penguin", "Tiger", "Dolphin", "Giraffe", "Octopus",
        "Kangaroo", "Eagle", "Butterfly", "Whale",
    )),
    GameCategory("Movies", (
        "Titanic", "Avatar", "The Lion King", "Star Wars", "Harry Potter",
        "The Avengers", "Frozen", "Jurassic Park", "The Matrix", "Toy Story",
    )),
    GameCategory("Food", (
        "Pizza", "Sushi", "Chocolate", "Ice Cream", "Hamburger", "Pasta",
        "Tacos", "Apple Pie", "Sandwich", "Pancakes",
    )),
    GameCategory("Objects", (
        "Smartphone", "Guitar", "Bicycle", "Camera", "Clock", "Umbrella",
        "Laptop", "Piano", "Telescope", "Backpack",
    )),
)


def get_category(name: str) -> GameCategory | None:
    """Look up a predefined category, ignoring case."""
    wanted = name.strip().lower()
    for category in PREDEFINED_CATEGORIES:
        if category.name.lower() == wanted:
            return category
    return None
