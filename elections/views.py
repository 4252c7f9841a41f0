from django.http import JsonResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.views import APIView

from ballotbox.errors import NotFoundError
from ballotbox.permissions import HasAdminKey

from . import results, services
from .serializers import (
    ElectionSerializer, ElectionListSerializer, ElectionCreateSerializer,
    ElectionResultsSerializer, DetailedElectionResultsSerializer,
)


# Public endpoints

@api_view(['GET'])
def current_election(request):
    """Active election with its candidates, or null"""
    election = services.get_current_election()
    if election is None:
        return JsonResponse(None, safe=False)
    return Response(ElectionSerializer(election).data)


@api_view(['GET'])
def election_results(request, election_id):
    """Results of a closed election"""
    outcome = results.get_results(election_id)
    return Response(ElectionResultsSerializer(outcome).data)


@api_view(['GET'])
def latest_results(request):
    """Results of the most recently closed election"""
    latest = services.get_latest_closed_election()
    if latest is None:
        raise NotFoundError('No closed election found')
    return Response(ElectionResultsSerializer(latest).data)


# Admin endpoints

class ElectionListCreateView(APIView):
    permission_classes = [HasAdminKey]

    def get(self, request):
        elections = services.list_elections()
        return Response(ElectionListSerializer(elections, many=True).data)

    def post(self, request):
        serializer = ElectionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        election = services.create_election(
            name=data['name'],
            start_datetime=data['startDatetime'],
            close_datetime=data['closeDatetime'],
            candidate_names=data['candidates'],
        )
        return Response({
            'success': True,
            'electionId': election.pk,
            'election': ElectionSerializer(election).data,
            'message': 'Election created successfully!',
        }, status=status.HTTP_201_CREATED)


class ElectionDetailView(APIView):
    permission_classes = [HasAdminKey]

    def get(self, request, election_id):
        election = services.get_election(election_id)
        return Response(ElectionSerializer(election).data)


class CloseElectionView(APIView):
    permission_classes = [HasAdminKey]
    not_found_status = status.HTTP_400_BAD_REQUEST

    def post(self, request, election_id):
        election = services.close_election(election_id)
        return Response({
            'success': True,
            'message': f'Election {election.name} closed successfully',
            'election': ElectionSerializer(election).data,
        })


@api_view(['GET'])
@permission_classes([HasAdminKey])
def detailed_results(request, election_id):
    """Results with voter identities (admin only)"""
    detailed = results.get_detailed_results(election_id)
    return Response(DetailedElectionResultsSerializer(detailed).data)
