"""
Management command to show the daily question prompt pool.

Usage:
    python manage.py list_prompts
    python manage.py list_prompts --category=lore
"""

from django.core.management.base import BaseCommand, CommandError
from journey.prompts import PromptCategory, prompt_texts


class Command(BaseCommand):
    help = 'Lists the prompts new daily questions are drawn from'

    def add_arguments(self, parser):
        parser.add_argument(
            '--category',
            help='Only list prompts of this category',
        )

    def handle(self, *args, **options):
        category = options.get('category')
        if category and category not in PromptCategory.values:
            raise CommandError(
                f"Unknown category '{category}'. Choose from: {', '.join(PromptCategory.values)}"
            )

        texts = prompt_texts(category)
        for text in texts:
            self.stdout.write(f'- {text}')

        self.stdout.write(self.style.SUCCESS(f'{len(texts)} prompts'))
