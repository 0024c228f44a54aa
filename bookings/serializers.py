"""
Serializers for booking management.
"""
from rest_framework import serializers
from django.utils import timezone

from .models import StagedBooking


class BookingRecordSerializer(serializers.Serializer):
    """Serializer for viewing booking history records."""
    transaction_id = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)
    train_number = serializers.IntegerField(read_only=True)
    train_name = serializers.CharField(read_only=True)
    journey_date = serializers.DateField(read_only=True)
    from_station = serializers.CharField(read_only=True)
    to_station = serializers.CharField(read_only=True)
    seats = serializers.IntegerField(read_only=True)
    travel_class = serializers.CharField(read_only=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    booked_at = serializers.DateTimeField(read_only=True)


class StagedBookingSerializer(serializers.Serializer):
    """Serializer for staging seats before the booking is confirmed."""
    train_number = serializers.IntegerField(min_value=1)
    seats = serializers.IntegerField(min_value=1)
    journey_date = serializers.DateField()
    travel_class = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    staged_at = serializers.DateTimeField(read_only=True)

    def validate_journey_date(self, value):
        """Cannot book for past dates."""
        if value < timezone.localdate():
            raise serializers.ValidationError("Cannot book for past dates.")
        return value

    def create(self, validated_data):
        return StagedBooking(**validated_data)
