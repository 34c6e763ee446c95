from django.urls import path
from .views import revenue_list_create, revenue_detail, milk_sale_create

urlpatterns = [
    path('revenues/', revenue_list_create, name='revenue-list-create'),
    path('revenues/<int:pk>/', revenue_detail, name='revenue-detail'),
    path('milk-sales/', milk_sale_create, name='milk-sale-create'),
]
