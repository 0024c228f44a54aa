"""Serializers for accounts and authentication."""
from rest_framework import serializers

from .models import Account


class AccountSerializer(serializers.Serializer):
    email = serializers.EmailField(read_only=True)
    first_name = serializers.CharField(read_only=True)
    last_name = serializers.CharField(read_only=True)
    address = serializers.CharField(read_only=True)
    phone = serializers.CharField(read_only=True)
    role = serializers.CharField(read_only=True)


class ProfileSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100, allow_blank=True, required=False, default='')
    address = serializers.CharField(max_length=255, allow_blank=True, required=False, default='')
    phone = serializers.RegexField(r'^\d{10,15}$', error_messages={
        'invalid': 'Phone number must be 10 to 15 digits.'
    })


class UserRegistrationSerializer(ProfileSerializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)

    def validate_email(self, value):
        return value.strip().lower()

    def create(self, validated_data):
        password = validated_data.pop('password')
        account = Account(**validated_data)
        account.set_password(password)
        return account


class UserLoginSerializer(serializers.Serializer):
    username = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate_username(self, value):
        return value.strip().lower()


class PasswordChangeSerializer(serializers.Serializer):
    username = serializers.EmailField()
    old_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=6)

    def validate_username(self, value):
        return value.strip().lower()

    def validate(self, attrs):
        if attrs['old_password'] == attrs['new_password']:
            raise serializers.ValidationError(
                {'new_password': "New password must differ from the old one."}
            )
        return attrs
