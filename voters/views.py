from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.views import APIView

from ballotbox.permissions import HasAdminKey

from . import registry
from .serializers import VoterSerializer, VoterCreateSerializer, VoterImportSerializer


class VoterListView(APIView):
    permission_classes = [HasAdminKey]

    def get(self, request):
        return Response(VoterSerializer(registry.list_voters(), many=True).data)

    def post(self, request):
        serializer = VoterCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        voter = registry.add_voter(
            name=serializer.validated_data['name'],
            key_code=serializer.validated_data['keyCode'],
        )
        return Response({
            'success': True,
            'voter': VoterSerializer(voter).data,
        }, status=status.HTTP_201_CREATED)

    def delete(self, request):
        deleted = registry.clear_all_voters()
        return Response({
            'success': True,
            'deleted': deleted,
            'message': f'Deleted {deleted} voters',
        })


class VoterDetailView(APIView):
    permission_classes = [HasAdminKey]
    not_found_status = status.HTTP_400_BAD_REQUEST

    def delete(self, request, voter_id):
        registry.delete_voter(voter_id)
        return Response({'success': True})


@api_view(['POST'])
@permission_classes([HasAdminKey])
def import_voters(request):
    """Bulk import voters from ``name,keyCode`` lines"""
    serializer = VoterImportSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    summary = registry.import_voters(serializer.get_lines())
    return Response({
        'success': True,
        'imported': summary.imported,
        'skipped': summary.skipped,
        'message': f'Imported {summary.imported} voters, skipped {summary.skipped}',
    })


@api_view(['GET'])
@permission_classes([HasAdminKey])
def generate_key_code(request):
    """Random unused key code"""
    return Response({'keyCode': registry.generate_key_code()})
