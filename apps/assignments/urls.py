"""
Assignment URLs
"""

from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import TaskAssignmentViewSet

router = SimpleRouter()
router.register(r'', TaskAssignmentViewSet, basename='assignment')

urlpatterns = [
    path('', include(router.urls)),
]
