from rest_framework import serializers


class CastVoteSerializer(serializers.Serializer):
    keyCode = serializers.CharField(
        max_length=32,
        error_messages={'required': 'Key code and candidate ID are required',
                        'blank': 'Key code and candidate ID are required'},
    )
    candidateId = serializers.IntegerField(
        error_messages={'required': 'Key code and candidate ID are required',
                        'null': 'Key code and candidate ID are required'},
    )
