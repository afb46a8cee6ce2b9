"""Cards, decks and the dealing shoe."""
