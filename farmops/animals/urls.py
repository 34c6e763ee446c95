from django.urls import path
from .views import (
    animal_list_create, animal_detail, animal_record_list_create,
    animal_ovr, animal_growth, populate_weights,
)

urlpatterns = [
    path('animals/', animal_list_create, name='animal-list-create'),
    path('animals/<int:pk>/', animal_detail, name='animal-detail'),
    path('animals/<int:pk>/ovr/', animal_ovr, name='animal-ovr'),
    path('animals/<int:pk>/growth/', animal_growth, name='animal-growth'),
    path('animals/<int:pk>/records/<slug:record_type>/', animal_record_list_create, name='animal-record-list-create'),

    # Function endpoints
    path('functions/populate-weights/', populate_weights, name='fn-populate-weights'),
]
