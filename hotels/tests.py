from django.test import TestCase

from hospitality.exceptions import BadRequest, Forbidden, NotFound
from hospitality.testing import make_hotel, make_staff

from .access import ensure_hotel_access, resolve_hotel, scope_queryset
from .models import Hotel, Staff


class HotelScopeTests(TestCase):
    """Tenant isolation between hotels"""

    def setUp(self):
        self.grand = make_hotel()
        self.other = make_hotel(code='oth', name='Other Inn')
        self.manager = make_staff(self.grand)
        self.admin = make_staff(role=Staff.Role.SUPER_ADMIN)

    def test_code_is_uppercased(self):
        self.assertEqual(self.other.code, 'OTH')

    def test_staff_limited_to_own_hotel(self):
        ensure_hotel_access(self.manager, self.grand.pk)
        with self.assertRaises(Forbidden):
            ensure_hotel_access(self.manager, self.other.pk)

    def test_staff_without_hotel_is_denied(self):
        floating = make_staff(role=Staff.Role.CASHIER)
        with self.assertRaises(Forbidden):
            ensure_hotel_access(floating, self.grand.pk)

    def test_super_admin_sees_everything(self):
        ensure_hotel_access(self.admin, self.other.pk)
        self.assertEqual(scope_queryset(self.admin, Hotel.objects.all()).count(), 2)

    def test_resolve_hotel(self):
        # Staff cannot redirect a create to another hotel
        self.assertEqual(resolve_hotel(self.manager, self.other.pk), self.grand)
        self.assertEqual(resolve_hotel(self.admin, self.other.pk), self.other)
        with self.assertRaises(BadRequest):
            resolve_hotel(self.admin)
        with self.assertRaises(NotFound):
            resolve_hotel(self.admin, 9999)

    def test_scope_queryset(self):
        staff = Staff.objects.all()
        self.assertEqual(list(scope_queryset(self.manager, staff, self.other.pk)), [self.manager])
        self.assertEqual(list(scope_queryset(self.admin, staff, self.grand.pk)), [self.manager])

    def test_hotel_filter_must_be_numeric(self):
        with self.assertRaises(BadRequest):
            scope_queryset(self.admin, Staff.objects.all(), 'grand')
        with self.assertRaises(BadRequest):
            resolve_hotel(self.admin, 'grand')
        self.assertEqual(resolve_hotel(self.admin, str(self.other.pk)), self.other)
