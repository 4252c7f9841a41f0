from rest_framework import serializers

from .models import Voter


class VoterSerializer(serializers.ModelSerializer):
    keyCode = serializers.CharField(source='key_code', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Voter
        fields = ['id', 'name', 'keyCode', 'createdAt']


class VoterCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    keyCode = serializers.CharField(max_length=32)


class VoterImportSerializer(serializers.Serializer):
    """
    Line-oriented ``name,keyCode`` source: an uploaded file, a text blob or a
    list of lines.
    """
    file = serializers.FileField(required=False)
    content = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    lines = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)

    def validate(self, attrs):
        provided = [key for key in ('file', 'content', 'lines') if key in attrs]
        if len(provided) != 1:
            raise serializers.ValidationError(
                'Provide exactly one of: file, content, lines'
            )
        return attrs

    def get_lines(self):
        data = self.validated_data
        if 'lines' in data:
            return data['lines']
        if 'content' in data:
            return data['content'].splitlines()
        raw = data['file'].read()
        try:
            return raw.decode('utf-8-sig').splitlines()
        except UnicodeDecodeError:
            raise serializers.ValidationError({'file': 'File must be UTF-8 text'})
