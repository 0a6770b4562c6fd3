import logging
import random

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


def generate_number(prefix, digits=4, now=None):
    """
    Build a display number: 3-letter prefix + YY + MM + random digits,
    e.g. BKG25070042.
    """
    now = now or timezone.now()
    suffix = str(random.randint(0, 10 ** digits - 1)).zfill(digits)
    return f"{prefix}{now:%y}{now:%m}{suffix}"


def save_with_unique_number(instance, field, prefix, digits=4, **save_kwargs):
    """
    Save a new instance, assigning a generated number to `field`.

    Each attempt runs in its own savepoint so a collision on the unique
    column only rolls back that attempt. Existing numbers are kept as-is.
    """
    if getattr(instance, field):
        instance.save(**save_kwargs)
        return instance

    attempts = getattr(settings, 'NUMBER_GENERATION_ATTEMPTS', 10)
    model = type(instance)

    for attempt in range(1, attempts + 1):
        number = generate_number(prefix, digits)
        if model.objects.filter(**{field: number}).exists():
            continue
        setattr(instance, field, number)
        try:
            with transaction.atomic():
                instance.save(**save_kwargs)
            return instance
        except IntegrityError:
            if not model.objects.filter(**{field: number}).exists():
                raise
            # Another writer took the same number between the check and the insert
            logger.debug("Number %s collided on attempt %d", number, attempt)
            setattr(instance, field, '')
            instance.pk = None
            continue

    raise IntegrityError(f"Could not generate a unique {model.__name__}.{field} after {attempts} attempts")
