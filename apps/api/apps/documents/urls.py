"""Documents URLs."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import DocumentViewSet, PatientClinicListView, PatientDocumentListView

router = DefaultRouter()
router.register(r'documents', DocumentViewSet, basename='document')

urlpatterns = [
    path('', include(router.urls)),
    path('patient/documents/', PatientDocumentListView.as_view(), name='patient-documents'),
    path('patient/clinics/', PatientClinicListView.as_view(), name='patient-clinics'),
    path(
        'patient/clinics/<uuid:clinic_id>/documents/',
        PatientDocumentListView.as_view(),
        name='patient-clinic-documents'
    ),
]
