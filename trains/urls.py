"""
URL configuration for trains app.
"""
from django.urls import path
from .views import TrainDetailView, TrainListView, TrainSearchView

urlpatterns = [
    path('search/', TrainSearchView.as_view(), name='train_search'),
    path('<int:number>/', TrainDetailView.as_view(), name='train_detail'),
    path('', TrainListView.as_view(), name='train_list'),
]
