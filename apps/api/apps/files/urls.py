"""Files URLs."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ClinicFileViewSet

router = DefaultRouter()
router.register(r'files', ClinicFileViewSet, basename='file')

urlpatterns = [
    path('', include(router.urls)),
]
