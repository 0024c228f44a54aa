"""Views for booking management."""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from rest_framework import serializers as drf_serializers

from core.constants import ResponseCode
from core.exceptions import TrainException
from core.permissions import IsCustomer
from utils.container import get_container

from .serializers import BookingRecordSerializer, StagedBookingSerializer


# Response serializers for Swagger
class StagedResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    staged = StagedBookingSerializer()


class BookingResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    transaction_id = drf_serializers.CharField()
    booking = BookingRecordSerializer()


class BookingListResponseSerializer(drf_serializers.Serializer):
    count = drf_serializers.IntegerField()
    results = BookingRecordSerializer(many=True)


class StageBookingView(APIView):
    """Pick seats, class and journey date on a train."""
    permission_classes = [IsCustomer]

    @extend_schema(
        summary="Stage a booking",
        description="Remembers the seat count, class and date on the caller's session until confirmed.",
        request=StagedBookingSerializer,
        responses={200: StagedResponseSerializer},
        examples=[
            OpenApiExample(
                "Stage 2 seats",
                value={
                    "train_number": 12951,
                    "seats": 2,
                    "journey_date": "2030-10-10",
                    "travel_class": "SL"
                },
                request_only=True
            )
        ],
        tags=["Bookings"]
    )
    def post(self, request):
        serializer = StagedBookingSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        staged = get_container().orchestrator.stage(request.session_record, serializer.save())
        return Response({
            'message': 'Booking staged, confirm to complete the payment',
            'staged': StagedBookingSerializer(staged).data,
        })

    @extend_schema(
        summary="Get the staged booking",
        responses={200: StagedBookingSerializer},
        tags=["Bookings"]
    )
    def get(self, request):
        staged = get_container().orchestrator.staged_booking(request.session_record)
        if staged is None:
            raise TrainException.of(ResponseCode.NOT_FOUND, "No booking in progress")
        return Response(StagedBookingSerializer(staged).data)


class ConfirmBookingView(APIView):
    """Debit the staged seats and record the booking."""
    permission_classes = [IsCustomer]

    @extend_schema(
        summary="Confirm the staged booking",
        description="Takes the seats atomically and returns the transaction id. "
                    "The staged selection is consumed whether or not the booking succeeds.",
        request=None,
        responses={201: BookingResponseSerializer},
        tags=["Bookings"]
    )
    def post(self, request):
        record = get_container().orchestrator.confirm(request.session_record)
        return Response({
            'message': 'Booking confirmed successfully',
            'transaction_id': record.transaction_id,
            'booking': BookingRecordSerializer(record).data,
        }, status=status.HTTP_201_CREATED)


class MyBookingsView(APIView):
    """Get the caller's booking history."""
    permission_classes = [IsCustomer]

    @extend_schema(
        summary="Get my bookings",
        description="Returns all bookings of the signed-in customer, newest first",
        responses={200: BookingListResponseSerializer},
        tags=["Bookings"]
    )
    def get(self, request):
        try:
            records = get_container().bookings.get_all_by_account(request.session_record.email)
        except TrainException as e:
            if e.error_code != ResponseCode.NO_CONTENT.name:
                raise
            return Response({'count': 0, 'results': [], 'message': e.error_message})

        return Response({
            'count': len(records),
            'results': BookingRecordSerializer(records, many=True).data,
        })


class BookingDetailView(APIView):
    """Get one booking by transaction id."""
    permission_classes = [IsCustomer]

    @extend_schema(
        summary="Get booking by transaction id",
        description="Customers can only view their own bookings.",
        parameters=[
            OpenApiParameter(name='transaction_id', type=str, location='path', description='Booking transaction id')
        ],
        responses={200: BookingRecordSerializer},
        tags=["Bookings"]
    )
    def get(self, request, transaction_id):
        record = get_container().bookings.get_by_transaction_id(
            transaction_id.upper(), request.session_record.email
        )
        return Response(BookingRecordSerializer(record).data)
