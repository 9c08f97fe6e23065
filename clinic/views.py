"""
HTTP 层。View 只做：取参数 → 调 services → 序列化。
业务异常直接往上抛，由 exception_handler.unified_exception_handler 统一格式化。
"""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .serializers import (
    serialize_batch_result,
    serialize_diagnosis_created,
    serialize_diagnosis_detail,
)


class DiagnosisCreateView(APIView):
    """POST /api/diagnoses/ - Create diagnosis and queue provider analysis"""

    def post(self, request):
        diagnosis = services.create_diagnosis(request.data)
        return Response(serialize_diagnosis_created(diagnosis), status=status.HTTP_201_CREATED)


class DiagnosisDetailView(APIView):
    """GET /api/diagnoses/<diagnosis_id>/ - Get diagnosis status and result"""

    def get(self, request, diagnosis_id):
        diagnosis = services.get_diagnosis_detail(diagnosis_id)
        return Response(serialize_diagnosis_detail(diagnosis))


class DiagnosisIngestView(APIView):
    """POST /api/diagnoses/<diagnosis_id>/ingest - Parse a provider callback body synchronously"""

    def post(self, request, diagnosis_id):
        canonical = services.ingest_diagnosis_callback(diagnosis_id, request.data)
        return Response(canonical.to_dict())


class DiagnosisDispensingView(APIView):
    """POST /api/diagnoses/<diagnosis_id>/dispensing - Record dispensing for a completed diagnosis"""

    def post(self, request, diagnosis_id):
        data = request.data if isinstance(request.data, dict) else {}
        key = request.headers.get('Idempotency-Key') or data.get('idempotency_key')
        batch, result = services.record_diagnosis_dispensing(
            diagnosis_id,
            idempotency_key=key,
            drugs=data.get('drugs'),
        )
        return Response(serialize_batch_result(batch, result), status=status.HTTP_201_CREATED)


class DispensingRecordView(APIView):
    """DELETE /api/dispensing/<record_id>/ - Delete a dispensing record and restore stock"""

    def delete(self, request, record_id):
        services.delete_dispensing_record(record_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
