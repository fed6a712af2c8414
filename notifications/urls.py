"""
URL routing for notification API endpoints.
"""
from django.urls import path
from . import views

app_name = 'notifications'

urlpatterns = [
    path('notifications', views.NotificationCreateView.as_view(), name='notification-create'),
    path('notifications/user/<int:user_id>', views.UserNotificationListView.as_view(), name='notification-user-list'),
    path('notifications/user/<int:user_id>/unread-count', views.UnreadCountView.as_view(), name='notification-unread-count'),
    path('notifications/user/<int:user_id>/mark-all-read', views.MarkAllReadView.as_view(), name='notification-mark-all-read'),
    path('notifications/<uuid:pk>', views.NotificationDetailView.as_view(), name='notification-detail'),
    path('notifications/<uuid:pk>/read', views.MarkReadView.as_view(), name='notification-read'),
]
