from django.urls import path
from .views import (
    DiagnosisCreateView,
    DiagnosisDetailView,
    DiagnosisDispensingView,
    DiagnosisIngestView,
    DispensingRecordView,
)

urlpatterns = [
    path('diagnoses/', DiagnosisCreateView.as_view(), name='diagnosis-create'),
    path('diagnoses/<uuid:diagnosis_id>/', DiagnosisDetailView.as_view(), name='diagnosis-detail'),
    path('diagnoses/<uuid:diagnosis_id>/ingest', DiagnosisIngestView.as_view(), name='diagnosis-ingest'),
    path('diagnoses/<uuid:diagnosis_id>/dispensing', DiagnosisDispensingView.as_view(), name='diagnosis-dispensing'),
    path('dispensing/<uuid:record_id>/', DispensingRecordView.as_view(), name='dispensing-record'),
]
