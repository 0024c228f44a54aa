"""Views for train management and search."""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample, inline_serializer
from rest_framework import serializers as drf_serializers

from core.constants import ResponseCode
from core.exceptions import TrainException
from core.permissions import IsAdmin, IsCustomerOrAdmin
from utils.container import get_container

from .serializers import TrainCreateSerializer, TrainSearchSerializer, TrainSerializer, TrainWriteSerializer


# Response serializers for Swagger
class TrainListResponseSerializer(drf_serializers.Serializer):
    count = drf_serializers.IntegerField()
    results = TrainSerializer(many=True)


class TrainResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    train = TrainSerializer()


def train_list_response(fetch):
    """Render a list of trains; an empty result is a 200 with count 0."""
    try:
        trains = fetch()
    except TrainException as e:
        if e.error_code != ResponseCode.NO_CONTENT.name:
            raise
        return Response({'count': 0, 'results': [], 'message': e.error_message})
    return Response({'count': len(trains), 'results': TrainSerializer(trains, many=True).data})


class AdminWritesMixin:
    """Any signed-in role may read; only admins may write."""

    def get_permissions(self):
        if self.request.method in ('GET', 'HEAD', 'OPTIONS'):
            return [IsCustomerOrAdmin()]
        return [IsAdmin()]


class TrainListView(AdminWritesMixin, APIView):

    @extend_schema(
        summary="List all trains",
        responses={200: TrainListResponseSerializer},
        tags=["Trains"]
    )
    def get(self, request):
        return train_list_response(get_container().inventory.get_all)

    @extend_schema(
        summary="Add a train (Admin only)",
        request=TrainCreateSerializer,
        responses={201: TrainResponseSerializer},
        examples=[
            OpenApiExample(
                "Add Train",
                value={
                    "number": 12951,
                    "name": "Mumbai Rajdhani",
                    "from_station": "Delhi",
                    "to_station": "Mumbai",
                    "seats": 500,
                    "fare": "2500.00"
                },
                request_only=True
            )
        ],
        tags=["Trains (Admin)"]
    )
    def post(self, request):
        serializer = TrainCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        train = serializer.to_train()
        if get_container().inventory.add_train(train) is not ResponseCode.SUCCESS:
            raise TrainException.of(ResponseCode.FAILURE, f"Train No.{train.number} already exists")
        return Response({
            'message': 'Train Added Successfully',
            'train': TrainSerializer(train).data,
        }, status=status.HTTP_201_CREATED)


class TrainSearchView(APIView):
    permission_classes = [IsCustomerOrAdmin]

    @extend_schema(
        summary="Search trains between stations",
        parameters=[
            OpenApiParameter(name='from_station', type=str, required=True, description='Origin station'),
            OpenApiParameter(name='to_station', type=str, required=True, description='Destination station'),
        ],
        responses={200: TrainListResponseSerializer},
        tags=["Trains"]
    )
    def get(self, request):
        serializer = TrainSearchSerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        orchestrator = get_container().orchestrator
        return train_list_response(
            lambda: orchestrator.search(data['from_station'], data['to_station'])
        )


class TrainDetailView(AdminWritesMixin, APIView):

    @extend_schema(
        summary="Get a train by number",
        responses={200: TrainSerializer},
        tags=["Trains"]
    )
    def get(self, request, number):
        train = get_container().inventory.get_by_id(number)
        return Response(TrainSerializer(train).data)

    @extend_schema(
        summary="Update a train (Admin only)",
        request=TrainWriteSerializer,
        responses={200: TrainResponseSerializer},
        tags=["Trains (Admin)"]
    )
    def put(self, request, number):
        serializer = TrainWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        inventory = get_container().inventory
        current = inventory.get_by_id(number)
        train = serializer.to_train(number, current_capacity=current.capacity)
        booked = current.booked_seats
        if train.seats + booked > train.capacity:
            raise TrainException.of(
                ResponseCode.BAD_REQUEST,
                f"Only {max(train.capacity - booked, 0)} Seats can be available, {booked} are booked",
            )
        if inventory.update_train(train, expected_seats=current.seats) is not ResponseCode.SUCCESS:
            raise TrainException.of(ResponseCode.FAILURE, f"Train No.{number} was not updated")
        return Response({
            'message': 'Train Updated Successfully',
            'train': TrainSerializer(train).data,
        })

    @extend_schema(
        summary="Delete a train (Admin only)",
        responses={200: inline_serializer(name='TrainDeleted', fields={'message': drf_serializers.CharField()})},
        tags=["Trains (Admin)"]
    )
    def delete(self, request, number):
        if get_container().inventory.delete_by_id(number) is not ResponseCode.SUCCESS:
            raise TrainException.of(ResponseCode.FAILURE, f"Train No.{number} is Not Available")
        return Response({'message': 'Train Deleted Successfully'})
