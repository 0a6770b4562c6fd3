from django.urls import path
from . import views

urlpatterns = [
    path('rooms/', views.RoomListCreateView.as_view(), name='room_list'),
    path('rooms/<int:room_id>/status', views.RoomStatusView.as_view(), name='room_status'),
    path('bookings/', views.BookingListCreateView.as_view(), name='booking_list'),
    path('bookings/<int:booking_id>', views.BookingDetailView.as_view(), name='booking_detail'),
    path('bookings/<int:booking_id>/checkin', views.BookingCheckInView.as_view(), name='booking_checkin'),
    path('bookings/<int:booking_id>/checkout', views.BookingCheckOutView.as_view(), name='booking_checkout'),
    path('bookings/<int:booking_id>/cancel', views.BookingCancelView.as_view(), name='booking_cancel'),
    path('bookings/<int:booking_id>/no-show', views.BookingNoShowView.as_view(), name='booking_no_show'),
    path('bookings/<int:booking_id>/payment', views.BookingPaymentView.as_view(), name='booking_payment'),
]
