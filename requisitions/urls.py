"""
URL routing for requisition API endpoints.
"""
from django.urls import path
from . import views

app_name = 'requisitions'

urlpatterns = [
    path('requests', views.RequestListCreateView.as_view(), name='request-list'),
    path('requests/user/<int:user_id>', views.UserRequestListView.as_view(), name='request-user-list'),
    path('requests/<uuid:pk>', views.RequestDetailView.as_view(), name='request-detail'),
    path('requests/<uuid:pk>/status', views.RequestStatusView.as_view(), name='request-status'),
    path('dashboard/stats', views.DashboardStatsView.as_view(), name='dashboard-stats'),
]
