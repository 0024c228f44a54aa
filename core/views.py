"""Views for accounts, sessions and the health check."""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from drf_spectacular.utils import extend_schema, OpenApiExample, inline_serializer
from rest_framework import serializers as drf_serializers

from utils.container import get_container

from .constants import ResponseCode, UserRole
from .exceptions import TrainException
from .permissions import IsAdmin, IsCustomer
from .serializers import (
    AccountSerializer, PasswordChangeSerializer, ProfileSerializer,
    UserLoginSerializer, UserRegistrationSerializer,
)


# Response serializers for Swagger documentation
class MessageResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()


class AccountResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    user = AccountSerializer()


class AccountListResponseSerializer(drf_serializers.Serializer):
    count = drf_serializers.IntegerField()
    results = AccountSerializer(many=True)


class HealthCheckView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Liveness check",
        description="UP when MongoDB answers a metadata query, DOWN otherwise",
        responses={200: inline_serializer(name='HealthStatus', fields={'status': drf_serializers.CharField()})},
        tags=["Health"]
    )
    def get(self, request):
        try:
            connected = get_container().gateway.is_connected()
        except TrainException:
            connected = False
        if connected:
            return Response({'status': 'UP'}, status=status.HTTP_200_OK)
        return Response({'status': 'DOWN'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class RegisterView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Register a new customer",
        request=UserRegistrationSerializer,
        responses={201: AccountResponseSerializer},
        examples=[
            OpenApiExample(
                "Register Example",
                value={
                    "email": "user@example.com",
                    "password": "Secret@123",
                    "first_name": "John",
                    "last_name": "Doe",
                    "address": "12 Station Road",
                    "phone": "9876543210"
                },
                request_only=True
            )
        ],
        tags=["Authentication"]
    )
    def post(self, request):
        serializer = UserRegistrationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        account = serializer.save()
        result = get_container().accounts(UserRole.CUSTOMER).register(account)
        if result is not ResponseCode.SUCCESS:
            raise TrainException.of(
                ResponseCode.FAILURE, f"User with Mail Id {account.email} is already registered"
            )
        return Response({
            'message': 'User Registered Successfully',
            'user': AccountSerializer(account).data,
        }, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    permission_classes = [AllowAny]
    role = UserRole.CUSTOMER

    @extend_schema(
        summary="Login",
        description="Authenticate and receive the role-scoped session cookie",
        request=UserLoginSerializer,
        responses={200: inline_serializer(name='LoginResponse', fields={
            'status': drf_serializers.CharField(),
            'role': drf_serializers.CharField(),
            'email': drf_serializers.EmailField(),
        })},
        tags=["Authentication"]
    )
    def post(self, request):
        serializer = UserLoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        username = serializer.validated_data['username']
        response = Response(status=status.HTTP_200_OK)
        result = get_container().gate.login(
            request, response, self.role, username, serializer.validated_data['password']
        )
        response.data = {'status': str(result), 'role': self.role.value, 'email': username}
        return response


class AdminLoginView(LoginView):
    role = UserRole.ADMIN


class LogoutView(APIView):
    permission_classes = [AllowAny]
    role = UserRole.CUSTOMER

    @extend_schema(
        summary="Logout",
        request=None,
        responses={200: MessageResponseSerializer},
        tags=["Authentication"]
    )
    def post(self, request):
        response = Response(status=status.HTTP_200_OK)
        if get_container().gate.logout(request, response, self.role):
            response.data = {'message': 'You have been successfully logged out'}
        else:
            response.data = {'message': 'Already Logged Out'}
        return response


class AdminLogoutView(LogoutView):
    role = UserRole.ADMIN


class ProfileView(APIView):
    permission_classes = [IsCustomer]

    @extend_schema(
        summary="Get my profile",
        responses={200: AccountSerializer},
        tags=["Profile"]
    )
    def get(self, request):
        accounts = get_container().accounts(UserRole.CUSTOMER)
        account = accounts.get_by_email(request.session_record.email)
        return Response(AccountSerializer(account).data)

    @extend_schema(
        summary="Update my profile",
        request=ProfileSerializer,
        responses={200: AccountResponseSerializer},
        tags=["Profile"]
    )
    def put(self, request):
        serializer = ProfileSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        accounts = get_container().accounts(UserRole.CUSTOMER)
        account = accounts.get_by_email(request.session_record.email)
        for field, value in serializer.validated_data.items():
            setattr(account, field, value)

        if accounts.update(account) is not ResponseCode.SUCCESS:
            raise TrainException.of(ResponseCode.FAILURE, "Please Enter the valid Information")
        return Response({
            'message': 'Your Profile has Been Successfully Updated',
            'user': AccountSerializer(account).data,
        })


class PasswordChangeView(APIView):
    permission_classes = [IsCustomer]

    @extend_schema(
        summary="Change my password",
        description="Re-validates the old password and ends the session on success",
        request=PasswordChangeSerializer,
        responses={200: MessageResponseSerializer},
        tags=["Profile"]
    )
    def post(self, request):
        serializer = PasswordChangeSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        if data['username'] != request.session_record.email:
            raise TrainException.of(ResponseCode.UNAUTHORIZED, "Invalid Username and Old Password !")

        container = get_container()
        result = container.accounts(UserRole.CUSTOMER).change_password(
            data['username'], data['old_password'], data['new_password']
        )
        if result is not ResponseCode.SUCCESS:
            raise TrainException.of(ResponseCode.FAILURE, "Password could not be changed")

        response = Response({
            'message': 'Your Username and Password has Been Updated Successfully, Please Login Again'
        })
        container.gate.logout(request, response, UserRole.CUSTOMER)
        return response


class CustomerListView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(
        summary="List customers (Admin only)",
        responses={200: AccountListResponseSerializer},
        tags=["Accounts (Admin)"]
    )
    def get(self, request):
        try:
            accounts = get_container().accounts(UserRole.CUSTOMER).get_all()
        except TrainException as e:
            if e.error_code != ResponseCode.NO_CONTENT.name:
                raise
            return Response({'count': 0, 'results': [], 'message': e.error_message})
        return Response({'count': len(accounts), 'results': AccountSerializer(accounts, many=True).data})


class CustomerDeleteView(APIView):
    permission_classes = [IsAdmin]

    @extend_schema(
        summary="Delete a customer account (Admin only)",
        responses={200: MessageResponseSerializer},
        tags=["Accounts (Admin)"]
    )
    def delete(self, request, email):
        accounts = get_container().accounts(UserRole.CUSTOMER)
        account = accounts.get_by_email(email.lower())
        if accounts.delete(account) is not ResponseCode.SUCCESS:
            raise TrainException.of(ResponseCode.FAILURE, f"Account {email} could not be deleted")
        return Response({'message': 'Deleted Successfully'})
