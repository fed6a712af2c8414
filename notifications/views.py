"""
Notification API Views.

Implements:
- GET /notifications/user/{user_id} - A user's notifications, newest first
- GET /notifications/user/{user_id}/unread-count - Unread count
- POST /notifications - Create a notification
- PATCH /notifications/{id}/read - Mark one read
- PATCH /notifications/user/{user_id}/mark-all-read - Mark all read
- DELETE /notifications/{id} - Delete a notification
"""
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import NotificationCreateSerializer, NotificationSerializer
from . import services


class UserNotificationListView(generics.ListAPIView):
    serializer_class = NotificationSerializer

    def get_queryset(self):
        return services.list_for_user(self.kwargs['user_id'])


class UnreadCountView(APIView):

    def get(self, request, user_id):
        return Response({'count': services.unread_count(user_id)})


class NotificationCreateView(APIView):

    def post(self, request):
        serializer = NotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        notification = services.create_notification(serializer.validated_data)
        return Response(NotificationSerializer(notification).data, status=status.HTTP_201_CREATED)


class MarkReadView(APIView):

    def patch(self, request, pk):
        return Response(NotificationSerializer(services.mark_read(pk)).data)


class MarkAllReadView(APIView):

    def patch(self, request, user_id):
        count = services.mark_all_read(user_id)
        return Response({
            'success': True,
            'message': f"Marked {count} notifications as read",
            'count': count,
        })


class NotificationDetailView(APIView):

    def delete(self, request, pk):
        services.delete_notification(pk)
        return Response({'success': True, 'message': 'Notification deleted successfully'})
