"""Management command to deactivate expired shared links."""

import logging
from typing import Any, Final

from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.marketplace.logic.shared_link_operations import expire_link
from server.apps.marketplace.models import SharedLink

_DEFAULT_BATCH_SIZE: Final = 1000

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Deactivate shared links whose expiry time has passed."""

    help = 'Deactivate shared links past their expiry time'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deactivated without changing anything',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max links to process (default: {_DEFAULT_BATCH_SIZE})',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the expiry command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        now = timezone.now()
        self.stdout.write(f'Looking for active links expired before {now}')

        expired_links = SharedLink.objects.filter(
            is_active=True,
            expires_at__lte=now,
        ).order_by('expires_at')[:batch_size]

        count = 0
        failed = 0

        for link in expired_links:
            if dry_run:
                self.stdout.write(
                    f'Would deactivate: {link.link_id} '
                    f'(owner: {link.owner_id}, expired: {link.expires_at})',
                )
                count += 1
                continue

            try:
                if expire_link(link.id):
                    count += 1
                    logger.info(
                        'Deactivated expired shared link: %s (ID: %d)',
                        link.link_id,
                        link.id,
                    )
            except Exception as exc:
                self.stderr.write(f'Failed to deactivate {link.link_id}: {exc}')
                logger.exception(
                    'Failed to deactivate shared link: %d',
                    link.id,
                )
                failed += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would deactivate {count} shared links'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Deactivated {count} shared links, {failed} failed',
                ),
            )
