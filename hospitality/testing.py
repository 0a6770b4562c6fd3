"""Fixtures shared by the per-app test modules"""

from django.conf import settings

from hotels.models import Hotel, Staff


def make_hotel(code='GRD', name='Grand Plaza', **kwargs):
    return Hotel.objects.create(code=code, name=name, **kwargs)


def make_staff(hotel=None, role=Staff.Role.MANAGER, email=None, **kwargs):
    email = email or f"{role}.{Staff.objects.count() + 1}@example.com"
    return Staff.objects.create(name=kwargs.pop('name', role.title()), email=email,
                                role=role, hotel=hotel, **kwargs)


def authenticate(client, staff):
    """Send the API key and acting staff id on every request made by `client`"""
    client.defaults['HTTP_X_API_KEY'] = settings.API_KEY
    client.defaults['HTTP_X_STAFF_ID'] = str(staff.pk)
