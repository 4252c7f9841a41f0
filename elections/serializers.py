from rest_framework import serializers

from .models import Election, Candidate


class CandidateSerializer(serializers.ModelSerializer):

    class Meta:
        model = Candidate
        fields = ['id', 'name']
        read_only_fields = fields


class ElectionSummarySerializer(serializers.ModelSerializer):
    startDatetime = serializers.DateTimeField(source='start_datetime', read_only=True)
    closeDatetime = serializers.DateTimeField(source='close_datetime', read_only=True)
    closedManually = serializers.BooleanField(source='closed_manually', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Election
        fields = ['id', 'name', 'startDatetime', 'closeDatetime', 'status', 'closedManually', 'createdAt']


class ElectionSerializer(ElectionSummarySerializer):
    candidates = CandidateSerializer(many=True, read_only=True)

    class Meta(ElectionSummarySerializer.Meta):
        fields = ElectionSummarySerializer.Meta.fields + ['candidates']


class ElectionListSerializer(ElectionSummarySerializer):
    voteCount = serializers.IntegerField(source='vote_count', read_only=True)

    class Meta(ElectionSummarySerializer.Meta):
        fields = ElectionSummarySerializer.Meta.fields + ['voteCount']


class ElectionCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    startDatetime = serializers.DateTimeField()
    closeDatetime = serializers.DateTimeField()
    candidates = serializers.ListField(
        child=serializers.CharField(max_length=200),
        min_length=2,
        error_messages={'min_length': 'At least 2 candidates are required'},
    )


class CandidateTallySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    voteCount = serializers.IntegerField(source='vote_count')


class WinnerSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    votes = serializers.IntegerField(source='vote_count')


class ElectionResultsSerializer(serializers.Serializer):
    election = ElectionSummarySerializer()
    results = CandidateTallySerializer(many=True)
    totalVotes = serializers.IntegerField(source='total_votes')
    winner = WinnerSerializer(allow_null=True)


class VoteRecordSerializer(serializers.Serializer):
    voteId = serializers.IntegerField(source='vote_id')
    votedAt = serializers.DateTimeField(source='voted_at')
    candidateId = serializers.IntegerField(source='candidate_id')
    candidateName = serializers.CharField(source='candidate_name')
    voterId = serializers.IntegerField(source='voter_id')
    voterName = serializers.CharField(source='voter_name')
    keyCode = serializers.CharField(source='key_code')


class CandidateVoterSerializer(serializers.Serializer):
    voterId = serializers.IntegerField(source='voter_id')
    voterName = serializers.CharField(source='voter_name')
    keyCode = serializers.CharField(source='key_code')
    votedAt = serializers.DateTimeField(source='voted_at')


class CandidateVotesSerializer(serializers.Serializer):
    candidateId = serializers.IntegerField(source='candidate_id')
    candidateName = serializers.CharField(source='candidate_name')
    votes = CandidateVoterSerializer(many=True)


class DetailedElectionResultsSerializer(ElectionResultsSerializer):
    detailedVotes = VoteRecordSerializer(source='detailed_votes', many=True)
    votesByCandidate = CandidateVotesSerializer(source='votes_by_candidate', many=True)
