from hospitality.exceptions import BadRequest, Forbidden, NotFound
from hospitality.params import parse_id

from .models import Hotel


def ensure_hotel_access(actor, hotel_id, message='Access denied'):
    """Raise Forbidden unless the actor may act on the given hotel"""
    if actor is None or actor.has_global_scope:
        return
    if actor.hotel_id is None or actor.hotel_id != hotel_id:
        raise Forbidden(message)


def resolve_hotel(actor, requested_hotel_id=None):
    """
    Pick the hotel a create operation targets. Staff always act on their own
    hotel; a super admin has to name one.
    """
    if actor.has_global_scope:
        hotel_id = parse_id(requested_hotel_id, 'hotel')
    else:
        hotel_id = actor.hotel_id

    if not hotel_id:
        raise BadRequest('Hotel is required')

    try:
        return Hotel.objects.get(pk=hotel_id)
    except Hotel.DoesNotExist:
        raise NotFound('Hotel not found')


def scope_queryset(actor, queryset, requested_hotel_id=None):
    """Limit a hotel-owned queryset to what the actor can see"""
    if actor.has_global_scope:
        hotel_id = parse_id(requested_hotel_id, 'hotel')
        if hotel_id:
            return queryset.filter(hotel_id=hotel_id)
        return queryset
    return queryset.filter(hotel_id=actor.hotel_id)
