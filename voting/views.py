from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import CastVoteSerializer
from .services import cast_vote


class CastVoteView(APIView):

    def post(self, request):
        serializer = CastVoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        receipt = cast_vote(
            key_code=serializer.validated_data['keyCode'],
            candidate_id=serializer.validated_data['candidateId'],
        )
        return Response({
            'success': True,
            'voterName': receipt.voter_name,
        })
