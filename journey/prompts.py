"""
Love Journey - Daily Question Prompts
=====================================

The fixed pool new daily questions are drawn from, both when a relationship
gets its first question of the day and when a fully answered question is
chained to its successor.
"""

import random

from django.db import models


class PromptCategory(models.TextChoices):
    """Vibe of a prompt. Purely descriptive for now."""
    WHOLESOME = 'wholesome', 'Wholesome'   # Comfort, appreciation, cute moments
    LORE = 'lore', 'The Lore'              # Shared history
    PLOT = 'plot', 'The Plot'              # Plans for the future
    WILDCARD = 'wildcard', 'Wildcard'      # Daily life


PROMPTS = [
    # Wholesome
    {
        'text': 'What made you smile today?',
        'category': PromptCategory.WHOLESOME,
    },
    {
        'text': "What's one thing you appreciate about me?",
        'category': PromptCategory.WHOLESOME,
    },
    {
        'text': 'What makes our relationship special?',
        'category': PromptCategory.WHOLESOME,
    },
    {
        'text': "What's a song that reminds you of us?",
        'category': PromptCategory.WHOLESOME,
    },
    # Lore
    {
        'text': "What's your favorite memory of us together?",
        'category': PromptCategory.LORE,
    },
    {
        'text': 'What moment made you realize we were going to work?',
        'category': PromptCategory.LORE,
    },
    # Plot
    {
        'text': 'Where would you like us to travel next?',
        'category': PromptCategory.PLOT,
    },
    {
        'text': "What's a tradition you'd like us to start?",
        'category': PromptCategory.PLOT,
    },
    # Wildcard
    {
        'text': 'What made you laugh out loud this week?',
        'category': PromptCategory.WILDCARD,
    },
]


def prompt_texts(category=None):
    """All prompt texts, optionally limited to one category."""
    return [
        p['text'] for p in PROMPTS
        if category is None or p['category'] == category
    ]


def random_prompt(rng=None, category=None):
    """Pick a prompt pseudo-randomly. Pass `rng` for deterministic choices."""
    choices = prompt_texts(category) or prompt_texts()
    return (rng or random).choice(choices)
