"""
URL routing for authentication and user endpoints.
"""
from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('auth/login', views.LoginView.as_view(), name='login'),
    path('users', views.UserListCreateView.as_view(), name='user-list'),
    path('users/<int:pk>', views.UserDetailView.as_view(), name='user-detail'),
]
