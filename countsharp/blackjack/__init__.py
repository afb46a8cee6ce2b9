"""Blackjack hand evaluation, counting, payout rules and statistics."""
