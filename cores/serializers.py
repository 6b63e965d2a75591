from rest_framework import serializers
from .models import Log, Feedback

class LogSerializer(serializers.ModelSerializer):
    # This field fetches the email from the related User model
    user_email = serializers.CharField(source='user.email', read_only=True)
    user_role = serializers.CharField(source='user.role', read_only=True)

    class Meta:
        model = Log
        fields = ['id', 'user', 'user_email', 'user_role', 'action', 'timestamp', 'value', 'details']

class FeedbackSerializer(serializers.ModelSerializer):
    # Map frontend camelCase names to model fields
    easeOfUse = serializers.CharField(source='ease_of_use', required=False, allow_blank=True)

    class Meta:
        model = Feedback
        fields = ['id', 'user', 'rating', 'easeOfUse', 'features', 'performance', 'recommendation', 'comments', 'created_at']
        read_only_fields = ['id', 'user', 'created_at']
