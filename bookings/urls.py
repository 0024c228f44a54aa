"""
URL configuration for bookings app.
"""
from django.urls import path
from .views import BookingDetailView, ConfirmBookingView, MyBookingsView, StageBookingView

urlpatterns = [
    path('stage/', StageBookingView.as_view(), name='booking_stage'),
    path('confirm/', ConfirmBookingView.as_view(), name='booking_confirm'),
    path('my/', MyBookingsView.as_view(), name='my_bookings'),
    path('<str:transaction_id>/', BookingDetailView.as_view(), name='booking_detail'),
]
