"""
Serializers for train management.
"""
from decimal import Decimal

from rest_framework import serializers

from .models import Train


class TrainSerializer(serializers.Serializer):
    """Train as returned to customers and admins."""
    number = serializers.IntegerField(read_only=True)
    name = serializers.CharField(read_only=True)
    from_station = serializers.CharField(read_only=True)
    to_station = serializers.CharField(read_only=True)
    seats = serializers.IntegerField(read_only=True)
    capacity = serializers.IntegerField(read_only=True)
    fare = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)


class TrainWriteSerializer(serializers.Serializer):
    """Serializer for creating/updating trains."""
    name = serializers.CharField(max_length=255)
    from_station = serializers.CharField(max_length=100)
    to_station = serializers.CharField(max_length=100)
    seats = serializers.IntegerField(min_value=0)
    capacity = serializers.IntegerField(min_value=1, required=False)
    fare = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'))

    def validate(self, attrs):
        """Validate stations and seat bounds."""
        attrs['from_station'] = attrs['from_station'].strip()
        attrs['to_station'] = attrs['to_station'].strip()

        if attrs['from_station'] == attrs['to_station']:
            raise serializers.ValidationError({
                'to_station': "Source and destination cannot be the same."
            })

        capacity = attrs.get('capacity')
        if capacity is not None and attrs['seats'] > capacity:
            raise serializers.ValidationError({
                'seats': "Available seats cannot exceed the train capacity."
            })
        return attrs

    def to_train(self, number, current_capacity=None):
        """Build the train; an omitted capacity keeps the current one."""
        data = dict(self.validated_data)
        if data.get('capacity') is None:
            data['capacity'] = current_capacity
        if data['capacity'] is not None and data['seats'] > data['capacity']:
            raise serializers.ValidationError({
                'seats': "Available seats cannot exceed the train capacity."
            })
        return Train(number=number, **data)


class TrainCreateSerializer(TrainWriteSerializer):
    number = serializers.IntegerField(min_value=1)

    def to_train(self):
        data = dict(self.validated_data)
        return Train(number=data.pop('number'), **data)


class TrainSearchSerializer(serializers.Serializer):
    """Query parameters of a search between two stations."""
    from_station = serializers.CharField(max_length=100)
    to_station = serializers.CharField(max_length=100)

    def validate(self, attrs):
        return {key: value.strip() for key, value in attrs.items()}
